from dataclasses import dataclass

from .generators import DEFAULT_PROMPT, Language
from .ollama_client import DEFAULT_TIMEOUT, LARGE_PAYLOAD_BYTES


@dataclass
class AnalysisOptions:
    """Options for an analysis run."""

    auto_rename: bool = True  # False stores proposals for review instead of renaming
    language: Language = Language.ENGLISH
    prompt: str = DEFAULT_PROMPT
    batch_size: int = 20
    request_delay: float = 0.3  # seconds between files
    retry_backoff: float = 2.0  # seconds before retrying an HTTP 500
    request_timeout: float = DEFAULT_TIMEOUT
    large_payload_warning_bytes: int = LARGE_PAYLOAD_BYTES


@dataclass
class CliOptions:
    server_address: str
    model: str | None
    list_models: bool
    analysis: AnalysisOptions
