"""A tool that renames image files using descriptions from a local vision model server."""

from .candidate_store import CandidateStore, RunState
from .ollama_client import OllamaClient, normalize_server_address
from .pipeline import CancellationToken, ImageRenamer
from .rename import rename_file
from .utils import RENAME_MARKER, sanitize_filename

__all__ = [
    "RENAME_MARKER",
    "CancellationToken",
    "CandidateStore",
    "ImageRenamer",
    "OllamaClient",
    "RunState",
    "normalize_server_address",
    "rename_file",
    "sanitize_filename",
]
