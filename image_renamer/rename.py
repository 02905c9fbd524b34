import errno
import logging
import os
from pathlib import Path

from .image_utils import unique_sibling
from .utils import RENAME_MARKER

# Filesystems without hard links (FAT, exFAT, some network shares) report these
LINK_UNSUPPORTED_ERRNOS = {errno.EPERM, errno.ENOTSUP, errno.EOPNOTSUPP, errno.EXDEV}


class RenameError(Exception):
    """Raised when a file can't be moved to its new name. The source is left in place."""

    def __init__(self, path: Path, cause: Exception):
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to rename {path.name}: {cause}")


def mark_base(base: str) -> str:
    """Append the rename marker to a base name unless it already has one."""
    return base if RENAME_MARKER in base else f"{base}{RENAME_MARKER}"


def move_no_replace(source: Path, target: Path) -> None:
    """Move ``source`` to ``target``, raising FileExistsError if ``target`` exists.

    ``os.rename`` silently replaces an existing target on POSIX, so the move is
    a hard link followed by an unlink there. Windows' rename already refuses.
    """
    if os.name == "nt":
        os.rename(source, target)
        return
    try:
        os.link(source, target)
    except FileExistsError:
        raise
    except OSError as e:
        if e.errno not in LINK_UNSUPPORTED_ERRNOS:
            raise
        logging.debug(f"Hard links unsupported for {source.parent} ({e}), falling back to rename")
        if target.exists():
            raise FileExistsError(errno.EEXIST, os.strerror(errno.EEXIST), str(target)) from e
        os.rename(source, target)
        return
    try:
        os.unlink(source)
    except OSError:
        # Leave the source as the only name for the file
        os.unlink(target)
        raise


def rename_file(path: Path, proposed_base: str) -> tuple[Path, str]:
    """Rename a file to a marked version of ``proposed_base`` in the same directory.

    The extension is kept (lowercased). If the target name is taken, ``-1``,
    ``-2``, ... is appended to the marked base until a free name is found.
    An existing file is never overwritten, even one that appears after the
    free name was picked.

    Returns:
        The new path and the marked base name

    Raises:
        RenameError: if the move fails
    """
    marked = mark_base(proposed_base)
    suffix = path.suffix.lower()

    while True:
        target = unique_sibling(path.parent, marked, suffix)
        logging.debug(f"Renaming {path.name} -> {target.name}")
        try:
            move_no_replace(path, target)
        except FileExistsError:
            logging.debug(f"{target.name} appeared before the rename, picking another name")
            continue
        except OSError as e:
            raise RenameError(path, e) from e
        return target, marked
