"""Tests for the command-line interface."""

import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from image_renamer.cli import main
from image_renamer.utils import RENAME_MARKER


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    path = tmp_path / "settings.conf"
    monkeypatch.setattr("image_renamer.settings.CONFIG_FILE_PATH", path)
    monkeypatch.delenv("IMAGE_RENAMER_SERVER", raising=False)
    return path


@pytest.fixture
def installed_client(fake_client, monkeypatch: pytest.MonkeyPatch):
    client = fake_client(["A red bicycle"], models=["llava:latest", "bakllava:7b"])
    monkeypatch.setattr("image_renamer.pipeline._build_client", lambda base_url, model, options: client)
    return client


def test_help() -> None:
    result = CliRunner().invoke(main, ["--help"])

    assert result.exit_code == 0
    assert "--auto-rename / --review" in result.output


def test_invalid_server_address() -> None:
    result = CliRunner().invoke(main, ["--server", "   "])

    assert result.exit_code == 1
    assert "Invalid server address" in result.output


def test_list_models(installed_client) -> None:
    result = CliRunner().invoke(main, ["--list-models"])

    assert result.exit_code == 0
    assert "bakllava:7b" in result.output
    assert "* llava:latest" in result.output


def test_renames_images(installed_client, make_images, tmp_path: Path, isolated_settings: Path) -> None:
    (photo,) = make_images("IMG_0001.jpg")

    result = CliRunner().invoke(main, ["--server", "192.168.1.10", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert not photo.exists()
    assert (tmp_path / f"a-red-bicycle{RENAME_MARKER}.jpg").exists()
    assert "1 renamed, 0 failed" in result.output
    assert "http://192.168.1.10:11434" in isolated_settings.read_text()


def test_review_mode(installed_client, make_images, tmp_path: Path) -> None:
    (photo,) = make_images("IMG_0001.jpg")

    result = CliRunner().invoke(main, ["--review", "--model", "llava:latest", str(photo)], input="y\n")

    assert result.exit_code == 0, result.output
    assert "a-red-bicycle" in result.output
    assert (tmp_path / f"a-red-bicycle{RENAME_MARKER}.jpg").exists()


def test_review_mode_declined(installed_client, make_images, tmp_path: Path) -> None:
    (photo,) = make_images("IMG_0001.jpg")

    result = CliRunner().invoke(main, ["--review", "--model", "llava:latest", str(photo)], input="n\n")

    assert result.exit_code == 0, result.output
    assert photo.exists()


def test_health_check_failure(fake_client, make_images, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    from image_renamer.ollama_client import ServerUnreachable

    client = fake_client([], health_error=ServerUnreachable("http://x:11434/api/tags", OSError("refused")))
    monkeypatch.setattr("image_renamer.pipeline._build_client", lambda base_url, model, options: client)
    make_images("IMG_0001.jpg")

    result = CliRunner().invoke(main, ["--model", "llava:latest", str(tmp_path)])

    assert result.exit_code == 1
    assert "Could not reach" in result.output


def test_missing_settings_file_is_logged(
    tmp_path: Path, isolated_settings: Path, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.DEBUG)
    folder = tmp_path / "photos"
    folder.mkdir()

    result = CliRunner().invoke(main, ["--log-level", "DEBUG", "--authorize-folder", str(folder)])

    assert result.exit_code == 0, result.output
    assert f"No settings file at {isolated_settings}" in caplog.text

    caplog.clear()
    result = CliRunner().invoke(main, ["--log-level", "DEBUG", "--authorize-folder", str(folder)])

    assert result.exit_code == 0, result.output
    assert "No settings file" not in caplog.text
