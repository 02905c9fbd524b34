from collections.abc import Iterable, Iterator
from pathlib import Path

import rich

from .image_utils import is_image_file
from .utils import has_rename_marker


class EmptyDirectoryError(Exception):
    """Exception raised when a directory has no files left to rename."""

    def __init__(self, path: Path, ignored_files: list[Path]):
        self.path = path
        self.ignored_files = ignored_files
        super().__init__(f"Directory {path} is empty")


class UnsupportedFileError(Exception):
    """A candidate that is not a supported image, or was already renamed."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Unsupported file type or already renamed: .{path.suffix.lower().lstrip('.')}")


def is_candidate(path: Path) -> bool:
    return is_image_file(path) and not has_rename_marker(path)


def iter_image_files(
    files: Iterable[Path],
    *,
    warn_on_invalid_files: bool = True,
) -> Iterator[Path | EmptyDirectoryError]:
    """Iterate over renamable image files.

    Directories are expanded one level deep; subdirectories and hidden files
    are ignored. Files already carrying the rename marker are skipped.
    """
    for file in files:
        if not file.exists():
            rich.print(f"[yellow]File not found: {file}[/yellow]")
            continue
        if file.is_dir():
            all_files = sorted(f for f in file.iterdir() if f.is_file() and not f.name.startswith("."))
            image_files = [f for f in all_files if is_image_file(f)]
            files_to_process = [f for f in image_files if not has_rename_marker(f)]
            yield from files_to_process
            if not files_to_process:
                yield EmptyDirectoryError(file, image_files)
            continue
        if not is_image_file(file):
            if warn_on_invalid_files:
                rich.print(f"[yellow]Not an image file: {file}[/yellow]")
            continue
        if has_rename_marker(file):
            continue
        yield file


def partition_candidates(candidates: Iterable[Path]) -> tuple[list[Path], list[Path]]:
    """Split candidates into (supported, unsupported-or-already-renamed), keeping order."""
    supported: list[Path] = []
    unsupported: list[Path] = []
    for path in candidates:
        (supported if is_candidate(path) else unsupported).append(path)
    return supported, unsupported
