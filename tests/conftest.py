"""Central Pytest Fixtures for Journey Archive.

Fixtures included:
- Files: jpeg_bytes, png_bytes, make_image_blob, image_files
- Backend: backend (in-memory, with one profile), client
- Records: make_item, ready_profile, items
- Config: isolated_config (no config file, fresh cache)
"""

import logging
import os
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

from journey_archive.backend.client import ArchiveBackendClient
from journey_archive.backend.memory import InMemoryBackend
from journey_archive.config import reset_config
from journey_archive.core.collection import ArchiveItems
from journey_archive.core.models import Contribution, ItemType, Profile
from journey_archive.upload.intake import FileBlob
from journey_archive.utils.logging import PACKAGE_NAME

PROFILE_ID = "profile-1"

# =============================================================================
# Helper Functions
# =============================================================================


def create_test_image(
    path: Path | None = None,
    width: int = 64,
    height: int = 48,
    color: str = "red",
    format: str = "JPEG",
) -> bytes:
    """Create a solid-colour test image.

    Args:
        path: Where to save the image, if anywhere.
        width: Width in pixels.
        height: Height in pixels.
        color: Solid color for the image.
        format: Pillow format name.

    Returns:
        The encoded image bytes.
    """
    img = Image.new("RGB", (width, height), color=color)
    buffer = BytesIO()
    img.save(buffer, format=format)
    data = buffer.getvalue()
    if path is not None:
        path.write_bytes(data)
    return data


# =============================================================================
# Logging / config isolation
# =============================================================================


@pytest.fixture(autouse=True)
def reset_package_logging():
    """Undo handler changes made by setup_logging (e.g. in CLI tests)."""
    yield
    package_logger = logging.getLogger(PACKAGE_NAME)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Run in an empty directory with no JOURNEY_ARCHIVE_* variables."""
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("JOURNEY_ARCHIVE_"):
            monkeypatch.delenv(name)
    reset_config()
    yield tmp_path
    reset_config()


# =============================================================================
# Files
# =============================================================================


@pytest.fixture
def jpeg_bytes() -> bytes:
    return create_test_image()


@pytest.fixture
def png_bytes() -> bytes:
    return create_test_image(format="PNG", color="blue")


@pytest.fixture
def make_image_blob():
    """Factory: in-memory JPEG FileBlob with a given name."""

    def _make(name: str, color: str = "red") -> FileBlob:
        return FileBlob.from_bytes(name, create_test_image(color=color), "image/jpeg")

    return _make


@pytest.fixture
def image_files(make_image_blob) -> list[FileBlob]:
    """Three valid JPEGs."""
    return [make_image_blob(name) for name in ("a.jpg", "b.jpg", "c.jpg")]


# =============================================================================
# Backend
# =============================================================================


@pytest.fixture
def backend() -> InMemoryBackend:
    """In-memory backend with one draft profile."""
    backend = InMemoryBackend(stewards=["steward-1"])
    backend.create_profile(profile_id=PROFILE_ID, full_name="Ada Example")
    return backend


@pytest.fixture
def client(backend: InMemoryBackend) -> ArchiveBackendClient:
    return ArchiveBackendClient(backend)


# =============================================================================
# Records
# =============================================================================


@pytest.fixture
def make_item():
    """Factory for contributions of the test profile."""

    def _make(
        item_id: str,
        item_type: ItemType = ItemType.IMAGE,
        display_order: int = 1,
        **fields,
    ) -> Contribution:
        return Contribution(
            id=item_id,
            owner_profile_id=PROFILE_ID,
            item_type=item_type,
            display_order=display_order,
            title=fields.pop("title", f"Item {item_id}"),
            **fields,
        )

    return _make


@pytest.fixture
def items() -> ArchiveItems:
    return ArchiveItems()


@pytest.fixture
def ready_profile() -> Profile:
    """A profile that passes every readiness check."""
    return Profile(
        id=PROFILE_ID,
        full_name="Ada Example",
        title="Ada Example",
        introduction="Played scrum-half for the Old Boys from 1983 until the cup final of 1991.",
        country="Ireland",
    )
