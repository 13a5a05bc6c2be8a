"""Turning a selected file into a transferable payload.

The backend expects file bytes as base64 text inside the JSON envelope.
Reading and encoding run in a worker thread so the event loop keeps serving
the other upload loop.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from journey_archive.upload.intake import FileBlob

logger = logging.getLogger(__name__)

DECODED_SIZE_MULTIPLIER = 0.75


async def encode_payload(file: FileBlob) -> str:
    """Read a file and return its bytes as base64 text."""
    data = await file.read()
    return await asyncio.to_thread(lambda: base64.b64encode(data).decode("ascii"))


def estimate_decoded_size(encoded: str, multiplier: float = DECODED_SIZE_MULTIPLIER) -> int:
    """Approximate byte size of a base64 payload.

    Example:
        >>> estimate_decoded_size("QUJD")
        3
    """
    return round(len(encoded) * multiplier)


def decode_payload(encoded: str) -> bytes:
    return base64.b64decode(encoded, validate=True)


def build_preview(data: bytes, mime_type: str, max_px: int = 160) -> str | None:
    """Small JPEG thumbnail of an image as a data URL.

    Returns None for non-images and for anything Pillow cannot read.
    """
    if not mime_type.lower().startswith("image/"):
        return None
    try:
        with Image.open(BytesIO(data)) as img:
            img.thumbnail((max_px, max_px))
            if img.mode not in ("RGB", "L"):
                img = img.convert("RGB")
            buffer = BytesIO()
            img.save(buffer, format="JPEG", quality=70)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.debug(f"No preview for {mime_type} payload: {e}")
        return None
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/jpeg;base64,{encoded}"


async def build_preview_for(file: FileBlob, max_px: int = 160) -> str | None:
    """Preview for a selected file, built off the event loop."""
    if not file.mime_type.lower().startswith("image/"):
        return None
    try:
        data = await file.read()
    except OSError as e:
        logger.debug(f"No preview for {file.name}: {e}")
        return None
    return await asyncio.to_thread(build_preview, data, file.mime_type, max_px)
