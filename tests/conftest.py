from collections.abc import Callable
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

from image_renamer.ollama_client import VisionClient


class FakeClient(VisionClient):
    """Scripted stand-in for the model server.

    Each ``describe_image`` call pops the next entry of ``responses``: strings
    are returned, exceptions are raised.
    """

    def __init__(
        self,
        responses: list[str | Exception] | None = None,
        *,
        models: list[str] | None = None,
        health_error: Exception | None = None,
        on_describe: Callable[[int], None] | None = None,
    ):
        self.responses = list(responses or [])
        self.models = models if models is not None else ["llava:latest"]
        self.health_error = health_error
        self.on_describe = on_describe
        self.model = "llava:latest"
        self.base_url = "http://fake:11434"
        self.health_checks = 0
        self.calls: list[tuple[bytes, str, str | None]] = []

    def health_check(self) -> None:
        self.health_checks += 1
        if self.health_error is not None:
            raise self.health_error

    def list_models(self) -> list[str]:
        return list(self.models)

    def describe_image(self, data: bytes, prompt: str, model: str | None = None) -> str:
        self.calls.append((data, prompt, model))
        if self.on_describe is not None:
            self.on_describe(len(self.calls))
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def fake_client() -> type[FakeClient]:
    return FakeClient


@pytest.fixture
def jpeg_bytes() -> bytes:
    """A 1x1 black JPEG."""
    img = Image.new("RGB", (1, 1), color="black")
    with BytesIO() as bio:
        img.save(bio, format="JPEG")
        return bio.getvalue()


@pytest.fixture
def make_images(tmp_path: Path, jpeg_bytes: bytes) -> Callable[..., list[Path]]:
    def make(*names: str) -> list[Path]:
        paths = []
        for name in names:
            path = tmp_path / name
            path.write_bytes(jpeg_bytes)
            paths.append(path)
        return paths

    return make
