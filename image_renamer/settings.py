"""Persisted settings and folder access for image-renamer."""

import configparser
import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

CONFIG_FILE_PATH = Path.home() / ".image-renamer.conf"
SERVER_ENV_VAR = "IMAGE_RENAMER_SERVER"
DEFAULT_SERVER_HOST = "127.0.0.1"

T = TypeVar("T")


@dataclass
class Settings:
    server_address: str = DEFAULT_SERVER_HOST  # raw, normalized on use
    folder_bookmark: str | None = None
    config_file_found: bool = False


def _read_parser(path: Path) -> tuple[configparser.ConfigParser, bool]:
    parser = configparser.ConfigParser(interpolation=None)
    if not path.exists():
        return parser, False
    try:
        parser.read(path, encoding="utf-8")
    except configparser.Error as e:
        logging.warning(f"Ignoring unreadable settings file {path}: {e}")
        return configparser.ConfigParser(interpolation=None), False
    return parser, True


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from the config file, falling back to defaults.

    The ``IMAGE_RENAMER_SERVER`` environment variable overrides the stored address.
    """
    path = path or CONFIG_FILE_PATH
    parser, found = _read_parser(path)

    server_address = os.environ.get(
        SERVER_ENV_VAR,
        parser.get("server", "address", fallback=DEFAULT_SERVER_HOST),
    )
    return Settings(
        server_address=server_address,
        folder_bookmark=parser.get("access", "folder_bookmark", fallback=None),
        config_file_found=found,
    )


def save_settings(settings: Settings, path: Path | None = None) -> bool:
    """Write settings back, preserving any other sections in the file.

    Returns:
        True on success, False if the file couldn't be written
    """
    path = path or CONFIG_FILE_PATH
    parser, _ = _read_parser(path)

    if not parser.has_section("server"):
        parser.add_section("server")
    parser.set("server", "address", settings.server_address)

    if settings.folder_bookmark:
        if not parser.has_section("access"):
            parser.add_section("access")
        parser.set("access", "folder_bookmark", settings.folder_bookmark)
    elif parser.has_section("access"):
        parser.remove_option("access", "folder_bookmark")

    try:
        with open(path, "w", encoding="utf-8") as f:
            parser.write(f)
    except OSError as e:
        logging.warning(f"Could not save settings to {path}: {e}")
        return False
    return True


class FolderAccessError(Exception):
    pass


class FolderAccess(ABC):
    """Grants access to a folder the user authorized earlier (external or network drives)."""

    @abstractmethod
    def authorize(self, folder: Path) -> None:
        pass

    @abstractmethod
    def with_access(self, body: Callable[[Path], T]) -> T:
        """Run ``body`` with the authorized folder, raising FolderAccessError if there is none."""


class PathFolderAccess(FolderAccess):
    """Folder access for platforms without sandboxing: the token is just the folder path."""

    def __init__(self, settings: Settings, settings_path: Path | None = None):
        self.settings = settings
        self.settings_path = settings_path

    def authorize(self, folder: Path) -> None:
        folder = folder.expanduser().resolve()
        if not folder.is_dir():
            raise FolderAccessError(f"Not a folder: {folder}")
        self.settings.folder_bookmark = str(folder)
        if not save_settings(self.settings, self.settings_path):
            raise FolderAccessError(f"Failed to save folder authorization for {folder}")

    def resolve(self) -> Path | None:
        if not self.settings.folder_bookmark:
            return None
        return Path(self.settings.folder_bookmark)

    def with_access(self, body: Callable[[Path], T]) -> T:
        folder = self.resolve()
        if folder is None:
            raise FolderAccessError("No authorized folder. Please authorize access first.")
        if not folder.is_dir():
            raise FolderAccessError(f"Could not access the authorized folder {folder}")
        return body(folder)
