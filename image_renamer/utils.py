"""Utility functions for image-renamer."""

import re
from pathlib import Path
from typing import Final

# Sentinel embedded in every filename this tool produces
RENAME_MARKER: Final = "__IR__"

FALLBACK_NAME: Final = "image"

_KEEP_CHARS: Final = frozenset("-_ ")


def has_rename_marker(path: Path | str) -> bool:
    """Check if a file's base name (without extension) carries the rename marker."""
    return RENAME_MARKER in Path(path).stem


def sanitize_filename(text: str) -> str:
    """Convert model output into a safe filename fragment.

    The result is lowercase, contains only alphanumerics and hyphens, and is
    never empty. Underscores pass the character filter but are treated as word
    separators, so they end up as hyphens like spaces do.

    Args:
        text: Arbitrary text, possibly with punctuation, newlines or unicode

    Returns:
        A lowercase hyphenated filename fragment, or ``"image"`` if nothing is left
    """
    text = text.lower()

    # Anything that isn't alphanumeric or one of "-_ " becomes a space
    text = "".join(c if c.isalnum() or c in _KEEP_CHARS else " " for c in text)
    text = text.replace("_", " ")

    text = re.sub(r"\s+", " ", text).strip()
    text = text.replace(" ", "-")

    # str.lower() leaves a handful of cased characters alone
    text = "".join(c for c in text if not c.isupper())

    return text or FALLBACK_NAME
