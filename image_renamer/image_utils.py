import logging
import platform
import subprocess
from pathlib import Path

import pillow_heif
from PIL import Image

pillow_heif.register_heif_opener()

IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tif", ".tiff", ".heic", ".heif", ".webp"}

# Formats the model server can't take directly; converted to JPEG before upload
CONVERTIBLE_EXTS = {".heic", ".heif"}

JPEG_QUALITY = 95


class ImageConversionError(RuntimeError):
    """Raised when an image can't be converted to a standard format."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        super().__init__(f"Failed to convert {path.name} to JPEG: {reason}")


def is_image_file(path: Path) -> bool:
    """Check if a file is an image file based on its extension."""
    return path.suffix.lower() in IMAGE_EXTS


def unique_sibling(directory: Path, stem: str, suffix: str) -> Path:
    """Return ``directory/stem+suffix``, adding ``-1``, ``-2``, ... until the name is free."""
    candidate = directory / f"{stem}{suffix}"
    counter = 1
    while candidate.exists():
        candidate = directory / f"{stem}-{counter}{suffix}"
        counter += 1
    return candidate


def _convert_with_pillow(image_path: Path, target: Path) -> None:
    with Image.open(image_path) as img:
        if img.mode != "RGB":
            logging.debug(f"Converting from {img.mode} to RGB")
            img = img.convert("RGB")
        img.save(target, format="JPEG", quality=JPEG_QUALITY)


def _convert_with_sips(image_path: Path, target: Path) -> None:
    """Convert using sips, the image tool that ships with macOS."""
    result = subprocess.run(
        ["sips", "-s", "format", "jpeg", str(image_path), "--out", str(target)],
        check=False,
        capture_output=True,
        text=True,
    )
    if result.returncode != 0:
        logging.debug(f"sips conversion failed: {result.stderr}")
        raise ImageConversionError(image_path, result.stderr.strip() or "sips failed")


def convert_to_jpeg_if_needed(image_path: Path) -> Path:
    """Return a path the model server can read, converting HEIC/HEIF to JPEG.

    Files already in a standard format are returned unchanged. Otherwise a JPEG
    is written next to the original under a collision-free name, and the
    original is removed.
    """
    if image_path.suffix.lower() not in CONVERTIBLE_EXTS:
        return image_path

    logging.debug(f"Starting HEIC conversion for {image_path}")
    target = unique_sibling(image_path.parent, image_path.stem, ".jpg")
    try:
        _convert_with_pillow(image_path, target)
    except (OSError, ValueError) as e:
        logging.debug(f"pillow-heif conversion failed: {e}")
        target.unlink(missing_ok=True)
        if platform.system() != "Darwin":
            raise ImageConversionError(image_path, str(e)) from e
        logging.debug("Falling back to sips")
        try:
            _convert_with_sips(image_path, target)
        except FileNotFoundError as sips_error:
            raise ImageConversionError(image_path, "sips command not found") from sips_error

    image_path.unlink()
    logging.debug(f"Converted {image_path.name} to {target.name}")
    return target
