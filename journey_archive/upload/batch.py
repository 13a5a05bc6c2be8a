"""Descriptive metadata for freshly uploaded items.

After a batch finishes, each succeeded upload gets one editable BatchRecord.
The owner fills in titles, captions, tags and visibility (optionally applying
one value to every record) and then saves. Saving is sequential and stops at
the first failure with a single generic message.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from journey_archive.core.collection import ArchiveItems
from journey_archive.core.models import Contribution, VisibilityLevel, parse_tags
from journey_archive.errors import ArchiveError, ContentValidationError
from journey_archive.upload.queue import QueueItem, QueueStatus

if TYPE_CHECKING:
    from journey_archive.backend.client import ArchiveBackendClient

logger = logging.getLogger(__name__)

SAVE_FAILED_MESSAGE = "Failed to save metadata"
UNTITLED = "Untitled"


class BatchRecord(BaseModel):
    """Editable metadata for one uploaded item.

    ``tags`` is kept as the comma-separated text the owner types.
    """

    item_id: str
    uploaded_title: str = ""
    title: str = ""
    description: str = ""
    caption: str = ""
    date_approximate: str = ""
    source_attribution: str = ""
    rights_status: str = ""
    tags: str = ""
    visibility: VisibilityLevel = VisibilityLevel.DRAFT

    model_config = {"validate_assignment": True}

    @classmethod
    def for_item(cls, item: Contribution) -> "BatchRecord":
        return cls(item_id=item.id, uploaded_title=item.title, title=item.title)

    def to_update_fields(self) -> dict[str, Any]:
        """Fields sent with update_archive_item."""

        def optional(value: str) -> str | None:
            return value.strip() or None

        return {
            "title": self.title.strip() or self.uploaded_title.strip() or UNTITLED,
            "description": optional(self.description),
            "caption": optional(self.caption),
            "date_approximate": optional(self.date_approximate),
            "source_attribution": optional(self.source_attribution),
            "rights_status": optional(self.rights_status),
            "tags": parse_tags(self.tags),
            "visibility": self.visibility,
        }


EDITABLE_FIELDS = frozenset(BatchRecord.model_fields) - {"item_id", "uploaded_title"}


@dataclass
class BatchSaveResult:
    success: bool
    error: str | None = None


class BatchMetadataCollector:
    """One BatchRecord per succeeded upload, saved in order.

    Example:
        >>> collector = BatchMetadataCollector.from_snapshot(snapshot, client, items)
        >>> collector.apply_to_all("visibility", VisibilityLevel.FAMILY)
        >>> collector.update(collector.records[0].item_id, "caption", "Final whistle")
        >>> result = await collector.save()
    """

    def __init__(
        self,
        records: Iterable[BatchRecord],
        client: ArchiveBackendClient,
        items: ArchiveItems,
    ) -> None:
        self.records = list(records)
        self.client = client
        self.items = items
        self.closed = False

    @classmethod
    def from_snapshot(
        cls,
        snapshot: Iterable[QueueItem],
        client: ArchiveBackendClient,
        items: ArchiveItems,
    ) -> "BatchMetadataCollector | None":
        """Open a collector for the succeeded uploads, or None if there are none."""
        uploaded = [
            q.result for q in snapshot if q.status == QueueStatus.SUCCEEDED and q.result is not None
        ]
        if not uploaded:
            return None
        return cls((BatchRecord.for_item(item) for item in uploaded), client, items)

    def _record(self, record_id: str) -> BatchRecord:
        for record in self.records:
            if record.item_id == record_id:
                return record
        raise KeyError(record_id)

    def _check_field(self, field: str) -> None:
        if field not in EDITABLE_FIELDS:
            raise ContentValidationError(f"'{field}' is not an editable field", field=field)

    def update(self, record_id: str, field: str, value: Any) -> BatchRecord:
        """Set one field of one record.

        Raises:
            KeyError: Unknown record.
            ContentValidationError: Unknown field or invalid value.
        """
        self._check_field(field)
        record = self._record(record_id)
        try:
            setattr(record, field, value)
        except ValidationError as e:
            raise ContentValidationError(f"Invalid value for {field}: {value!r}", field=field) from e
        return record

    def apply_to_all(self, field: str, value: Any) -> None:
        """Overwrite one field on every record."""
        self._check_field(field)
        for record in self.records:
            self.update(record.item_id, field, value)

    async def save(self) -> BatchSaveResult:
        """Persist every record in order, stopping at the first failure.

        Each saved record is written back to the working collection. The
        collector closes only when every record saved.
        """
        for record in self.records:
            fields = record.to_update_fields()
            try:
                await self.client.update_archive_item(record.item_id, **fields)
            except ArchiveError as e:
                logger.error(f"Saving metadata for {record.item_id} failed: {e.message}")
                return BatchSaveResult(success=False, error=SAVE_FAILED_MESSAGE)
            self.items.update(record.item_id, **fields)

        self.closed = True
        logger.info(f"Saved metadata for {len(self.records)} item(s)")
        return BatchSaveResult(success=True)
