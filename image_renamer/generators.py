from enum import Enum

from .utils import sanitize_filename

DEFAULT_PROMPT = "Provide a short, descriptive filename for this image without file extension."

DEFAULT_MODEL = "llava-llama3:8b-v1.1-fp16"

MAX_RESPONSE_LENGTH = 120  # Raw model output is cut here before sanitizing
MAX_BASE_LENGTH = 60  # Sanitized base names are cut here


class Language(str, Enum):
    """Languages the model can be asked to answer in."""

    ENGLISH = "English"
    FRENCH = "French"
    SPANISH = "Spanish"
    GERMAN = "German"


def build_prompt(prompt: str, language: Language) -> str:
    return f"{prompt} Respond in {language.value}."


def propose_base_name(response: str) -> str:
    """Turn a raw model response into a proposed base name (no extension)."""
    sanitized = sanitize_filename(response[:MAX_RESPONSE_LENGTH])
    return sanitized[:MAX_BASE_LENGTH]
