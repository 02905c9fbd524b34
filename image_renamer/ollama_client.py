"""HTTP client for an Ollama-compatible vision model server."""

import base64
import logging
from abc import ABC, abstractmethod
from urllib.parse import urlsplit

import requests

DEFAULT_SERVER_ADDRESS = "http://127.0.0.1:11434"
DEFAULT_PORT = 11434
DEFAULT_TIMEOUT = 120  # seconds
HEALTH_CHECK_TIMEOUT = 10  # seconds
LARGE_PAYLOAD_BYTES = 10_000_000  # ~10 MB of base64 in one JSON field


class OllamaClientError(Exception):
    """Base class for errors talking to the model server."""


class InvalidServerAddress(OllamaClientError, ValueError):
    def __init__(self, address: str):
        self.address = address
        super().__init__(
            "Invalid server address. Enter an IP or URL like 192.168.1.10 or http://192.168.1.10:11434."
        )


class ServerUnreachable(OllamaClientError):
    """The request never produced an HTTP response (connection refused, timeout, ...)."""

    def __init__(self, url: str, cause: Exception):
        self.url = url
        self.cause = cause
        super().__init__(f"Could not reach {url}: {cause}")


class HTTPStatusError(OllamaClientError):
    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP {status_code}: {body}")


class DecodingError(OllamaClientError):
    """The server answered 2xx but the body didn't have the expected shape."""

    def __init__(self, body: str | None):
        self.body = body
        if body:
            message = f"Failed to decode response from the server. Body: {body}"
        else:
            message = "Failed to decode response from the server."
        super().__init__(message)


def normalize_server_address(address: str) -> str:
    """Turn a bare host, host:port or full URL into a canonical base URL.

    The scheme defaults to ``http`` and the port to 11434.

    Raises:
        InvalidServerAddress: if the address is empty or can't be parsed
    """
    text = address.strip()
    if not text:
        raise InvalidServerAddress(address)
    if "://" not in text:
        text = f"http://{text}"

    try:
        parts = urlsplit(text)
        port = parts.port
    except ValueError as e:
        raise InvalidServerAddress(address) from e
    if not parts.hostname:
        raise InvalidServerAddress(address)

    scheme = parts.scheme or "http"
    netloc = parts.netloc if port is not None else f"{parts.netloc}:{DEFAULT_PORT}"
    path = parts.path.rstrip("/")
    return f"{scheme}://{netloc}{path}"


class VisionClient(ABC):
    """Interface the batch pipeline uses to talk to a model server."""

    @abstractmethod
    def health_check(self) -> None:
        """Return if the server answers with a 2xx status, raise otherwise."""

    @abstractmethod
    def list_models(self) -> list[str]:
        pass

    @abstractmethod
    def describe_image(self, data: bytes, prompt: str, model: str | None = None) -> str:
        """Ask the model to describe an image and return the trimmed text answer."""


class OllamaClient(VisionClient):
    """Client for the ``/api/tags`` and ``/api/generate`` endpoints."""

    def __init__(
        self,
        base_url: str = DEFAULT_SERVER_ADDRESS,
        model: str = "",
        *,
        timeout: float = DEFAULT_TIMEOUT,
        large_payload_bytes: int = LARGE_PAYLOAD_BYTES,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.large_payload_bytes = large_payload_bytes
        self.session = session or requests.Session()

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint}"

    def _request(self, method: str, endpoint: str, *, timeout: float, **kwargs) -> requests.Response:
        url = self._url(endpoint)
        logging.debug(f"{method} {url}")
        try:
            response = self.session.request(method, url, timeout=timeout, **kwargs)
        except requests.RequestException as e:
            raise ServerUnreachable(url, e) from e
        if not 200 <= response.status_code < 300:
            raise HTTPStatusError(response.status_code, response.text)
        return response

    def health_check(self) -> None:
        self._request("GET", "api/tags", timeout=HEALTH_CHECK_TIMEOUT)

    def list_models(self) -> list[str]:
        response = self._request("GET", "api/tags", timeout=HEALTH_CHECK_TIMEOUT)
        try:
            return [str(model["name"]) for model in response.json()["models"]]
        except (ValueError, KeyError, TypeError) as e:
            raise DecodingError(response.text) from e

    def describe_image(self, data: bytes, prompt: str, model: str | None = None) -> str:
        encoded = base64.b64encode(data).decode("ascii")
        if len(encoded) > self.large_payload_bytes:
            logging.warning(
                f"Base64 image payload is large ({len(encoded)} bytes); the server may reject it. "
                "Consider compressing the image."
            )

        payload = {
            "model": model or self.model,
            "prompt": prompt,
            "stream": False,
            "images": [encoded],
        }
        response = self._request("POST", "api/generate", timeout=self.timeout, json=payload)
        try:
            text = response.json()["response"]
        except (ValueError, KeyError, TypeError) as e:
            raise DecodingError(response.text) from e
        if not isinstance(text, str):
            raise DecodingError(response.text)
        return text.strip()
