"""Shared pytest fixtures for Restyle tests."""

import io
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from fakes import FakeImageService, RecordingSleep
from restyle.api.main import create_app
from restyle.core.config import RestyleConfig
from restyle.core.gallery_store import GalleryStore


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> RestyleConfig:
    """Create a test configuration writing into a temporary gallery.

    Backoff is disabled so retrying tests do not wait.

    Args:
        temp_dir: Temporary directory from fixture

    Returns:
        RestyleConfig instance for testing
    """
    return RestyleConfig(
        _env_file=None,
        gemini_api_key="test-key",
        outputs_dir=str(temp_dir / "outputs"),
        max_concurrency=4,
        max_attempts=3,
        backoff_base=0.0,
        max_images=5,
        max_upload_bytes=1024 * 1024,
    )


@pytest.fixture
def store(test_config: RestyleConfig) -> GalleryStore:
    """Gallery store rooted in the test outputs directory."""
    return GalleryStore(test_config.outputs_dir)


@pytest.fixture
def fake_service() -> FakeImageService:
    """Image service that always succeeds."""
    return FakeImageService()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def png_bytes() -> bytes:
    """A tiny real PNG image."""
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def test_client(test_config: RestyleConfig, fake_service: FakeImageService) -> Generator[TestClient, None, None]:
    """FastAPI TestClient backed by the fake image service.

    The client is entered as a context manager so the application lifespan
    wires the executor and gallery store onto ``app.state``.
    """
    app = create_app(test_config, service=fake_service)
    with TestClient(app) as client:
        yield client
