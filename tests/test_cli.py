import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from typer.testing import CliRunner

from booksnap import main
from booksnap.main import app
from booksnap.services.hugging_face_service import BookDetails, HuggingFaceAPIError, HuggingFaceService
from booksnap.ui_helpers import OUTPUT_MODE_ENV

runner = CliRunner()


@pytest.fixture(autouse=True)
def plain_output(monkeypatch):
    monkeypatch.setenv(OUTPUT_MODE_ENV, "plain")


def test_serve_runs_uvicorn(monkeypatch):
    run_mock = MagicMock()
    monkeypatch.setattr(main.uvicorn, "run", run_mock)

    result = runner.invoke(app, ["serve", "--host", "0.0.0.0", "--port", "9000"])
    assert result.exit_code == 0
    assert "Starting booksnap API on http://0.0.0.0:9000/" in result.stdout
    args, kwargs = run_mock.call_args
    assert args == ("booksnap.api:create_app",)
    assert kwargs["factory"] is True
    assert kwargs["host"] == "0.0.0.0"
    assert kwargs["port"] == 9000


def test_analyze_success(tmp_path, monkeypatch):
    image = tmp_path / "cover.png"
    image.write_bytes(b"png-bytes")
    extract_mock = AsyncMock(return_value=BookDetails(title="Dune", author="Frank Herbert", confidence=0.93))
    monkeypatch.setattr(HuggingFaceService, "extract_details", extract_mock)

    result = runner.invoke(app, ["analyze", str(image)])
    assert result.exit_code == 0
    assert "Title: Dune" in result.stdout
    assert "Author: Frank Herbert" in result.stdout
    assert "Confidence: 0.93" in result.stdout
    extract_mock.assert_awaited_once_with(b"png-bytes", "image/png")


def test_analyze_json_output(tmp_path, monkeypatch):
    image = tmp_path / "cover.jpg"
    image.write_bytes(b"jpeg-bytes")
    monkeypatch.setattr(
        HuggingFaceService,
        "extract_details",
        AsyncMock(return_value=BookDetails(title="Emma", author=None, confidence=0.5)),
    )

    result = runner.invoke(app, ["-o", "json", "analyze", str(image)])
    assert result.exit_code == 0
    assert json.loads(result.stdout.strip()) == {"title": "Emma", "author": None, "confidence": 0.5}


def test_analyze_missing_file(tmp_path):
    result = runner.invoke(app, ["analyze", str(tmp_path / "nope.jpg")])
    assert result.exit_code == 1
    assert "File not found" in result.stdout


def test_analyze_service_failure(tmp_path, monkeypatch):
    image = tmp_path / "cover.jpg"
    image.write_bytes(b"jpeg-bytes")
    monkeypatch.setattr(
        HuggingFaceService,
        "extract_details",
        AsyncMock(side_effect=HuggingFaceAPIError("AI service is not configured")),
    )

    result = runner.invoke(app, ["analyze", str(image)])
    assert result.exit_code == 1
    assert "Could not analyze image: AI service is not configured" in result.stdout


def test_cover_prints_result(monkeypatch):
    resolve_mock = AsyncMock(return_value={"source": "openlibrary", "coverUrl": "https://covers.openlibrary.org/b/id/1-M.jpg"})
    monkeypatch.setattr(main, "_resolve_cover", resolve_mock)

    result = runner.invoke(app, ["cover", "Dune", "--author", "Frank Herbert"])
    assert result.exit_code == 0
    assert "Source: openlibrary" in result.stdout
    assert "Cover URL: https://covers.openlibrary.org/b/id/1-M.jpg" in result.stdout
    resolve_mock.assert_awaited_once_with("Dune", "Frank Herbert")


def test_cover_description_output(monkeypatch):
    monkeypatch.setattr(
        main,
        "_resolve_cover",
        AsyncMock(return_value={"source": "ai-generated", "description": "Bold red type.", "confidence": 0.8}),
    )

    result = runner.invoke(app, ["cover", "Dune"])
    assert result.exit_code == 0
    assert "Description: Bold red type." in result.stdout
    assert "Confidence: 0.80" in result.stdout


def test_cover_empty_title():
    result = runner.invoke(app, ["cover", "   "])
    assert result.exit_code == 1
    assert "Title cannot be empty." in result.stdout
