"""Pre-flight checks for a user's file selection.

Nothing in this module touches the network. A selection is capped, each file
is checked for type and size, and every problem becomes one line of a single
notice so valid siblings are never held back by a bad file.

Example:
    >>> result = intake([FileBlob.from_path(p) for p in paths])
    >>> result.accepted          # files that will be queued
    >>> print(result.notice)     # "scan.txt: Invalid file type. ..."
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from journey_archive.config import UploadConfig

logger = logging.getLogger(__name__)

# Short labels for allowed types, used in the rejection message
_TYPE_LABELS = {
    "image/jpeg": "JPG",
    "image/jpg": "JPG",
    "image/png": "PNG",
    "image/webp": "WebP",
    "application/pdf": "PDF",
}


@dataclass(frozen=True)
class FileBlob:
    """An in-memory reference to a selected file.

    Either ``data`` holds the bytes or ``path`` points at them. The same
    FileBlob is reused on retry so nothing needs to be re-selected.

    Attributes:
        name: File name shown to the user.
        mime_type: Content type as reported at selection.
        size: Size in bytes.
        data: File bytes, when already in memory.
        path: Location on disk, when read lazily.
    """

    name: str
    mime_type: str
    size: int
    data: bytes | None = field(default=None, repr=False)
    path: Path | None = None

    @classmethod
    def from_path(cls, path: Path | str) -> "FileBlob":
        """Describe a file on disk without reading it."""
        path = Path(path)
        mime_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            mime_type=mime_type or "application/octet-stream",
            size=path.stat().st_size,
            path=path,
        )

    @classmethod
    def from_bytes(cls, name: str, data: bytes, mime_type: str | None = None) -> "FileBlob":
        if mime_type is None:
            mime_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
        return cls(name=name, mime_type=mime_type, size=len(data), data=data)

    async def read(self) -> bytes:
        """Return the file bytes, reading from disk off the event loop."""
        if self.data is not None:
            return self.data
        if self.path is None:
            raise OSError(f"No data source for {self.name}")
        return await asyncio.to_thread(self.path.read_bytes)


@dataclass
class IntakeResult:
    """Outcome of checking one selection.

    Attributes:
        accepted: Files that passed every check, in selection order.
        rejections: One ``"<file name>: <reason>"`` line per rejected file.
        cap_warning: Set when the selection exceeded the batch cap.
        dropped: Files beyond the cap, never checked.
    """

    accepted: list[FileBlob] = field(default_factory=list)
    rejections: list[str] = field(default_factory=list)
    cap_warning: str | None = None
    dropped: list[FileBlob] = field(default_factory=list)

    @property
    def notice(self) -> str | None:
        """All warnings joined into one multi-line message, or None."""
        lines = ([self.cap_warning] if self.cap_warning else []) + self.rejections
        return "\n".join(lines) if lines else None


def format_file_size(size: int) -> str:
    """Human-readable size.

    Example:
        >>> format_file_size(9 * 1024 * 1024)
        '9.0 MB'
    """
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def allowed_types_label(allowed_mime_types: Iterable[str]) -> str:
    labels: dict[str, None] = {}
    for mime in allowed_mime_types:
        labels[_TYPE_LABELS.get(mime, mime)] = None
    return ", ".join(labels)


def validate_file(file: FileBlob, config: UploadConfig | None = None) -> str | None:
    """Check one file's type and size.

    Returns:
        The rejection reason, or None when the file is acceptable.
    """
    config = config or UploadConfig()
    if file.mime_type.lower() not in config.allowed_mime_types:
        return f"Invalid file type. Allowed: {allowed_types_label(config.allowed_mime_types)}"
    if file.size > config.max_file_size_bytes:
        return (
            f"File too large ({file.size / (1024 * 1024):.1f}MB). "
            f"Maximum size is {config.max_file_size_mb}MB."
        )
    return None


def intake(files: Iterable[FileBlob], config: UploadConfig | None = None) -> IntakeResult:
    """Cap and validate a selection.

    Args:
        files: The selection, in the order the user picked it.
        config: Upload limits. Defaults to the built-in limits.

    Returns:
        IntakeResult with accepted files and the rejection lines.
    """
    config = config or UploadConfig()
    selection = list(files)
    result = IntakeResult()

    if len(selection) > config.max_batch_files:
        result.cap_warning = f"Only the first {config.max_batch_files} files will be uploaded."
        result.dropped = selection[config.max_batch_files:]
        selection = selection[: config.max_batch_files]
        logger.info(f"Selection capped, {len(result.dropped)} file(s) dropped")

    for file in selection:
        reason = validate_file(file, config)
        if reason is None:
            result.accepted.append(file)
        else:
            result.rejections.append(f"{file.name}: {reason}")
            logger.debug(f"Rejected {file.name}: {reason}")

    return result


def title_from_filename(name: str) -> str:
    """Default title for an uploaded file.

    Example:
        >>> title_from_filename("cup_final_1987.jpg")
        'cup final 1987'
    """
    stem = name.rsplit(".", 1)[0] if "." in name else name
    return stem.replace("_", " ")
