"""Bounded-concurrency upload queue.

The queue is a tuple of frozen QueueItems. Every change builds a new tuple and
replaces the old one, then notifies subscribers, so a snapshot handed out
earlier never changes.

Processing uses a worker-pull pool: ``min(concurrency, pending)`` long-lived
loops each claim the next pending item in FIFO order and drive it to
``succeeded`` or ``failed`` before claiming again. Claiming is synchronous
(the item is marked ``uploading`` before the loop's first await), so two
loops can never pick the same item. Only one run (enqueue, process or retry)
is active at a time; starting another, or clearing, raises
UploadInProgressError until it finishes.

Per-item lifecycle and progress:

    pending(0) -> uploading(10) -> encoded(40) -> sent(90) -> succeeded(100)
                                                           \\-> failed(0, error)

Example:
    >>> controller = UploadQueueController(client, "profile-1", items)
    >>> outcome = await controller.enqueue(files)
    >>> print(outcome.intake.notice)
    >>> [q.status for q in outcome.snapshot]
    [<QueueStatus.SUCCEEDED: 'succeeded'>, <QueueStatus.FAILED: 'failed'>]
    >>> await controller.retry(outcome.snapshot[1].id)
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

from journey_archive.config import UploadConfig
from journey_archive.core.collection import ArchiveItems
from journey_archive.core.models import Contribution, VisibilityLevel
from journey_archive.errors import ArchiveError, UploadInProgressError
from journey_archive.upload.encoding import build_preview_for, encode_payload
from journey_archive.upload.intake import FileBlob, IntakeResult, intake, title_from_filename
from journey_archive.utils.logging import LogContext

if TYPE_CHECKING:
    from journey_archive.backend.client import ArchiveBackendClient

logger = logging.getLogger(__name__)

# Progress checkpoints
PROGRESS_CLAIMED = 10
PROGRESS_ENCODED = 40
PROGRESS_SENT = 90
PROGRESS_DONE = 100

UPLOAD_FAILED_MESSAGE = "Upload failed. Please try again."


class QueueStatus(str, Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class QueueItem:
    """One file's place in the queue.

    Attributes:
        id: Local queue id (not the backend id).
        file: The selected file, reused on retry.
        status: Current queue status.
        progress: 0..100, non-decreasing until a failure resets it.
        error: User-facing error message after a failure.
        result: The persisted contribution after success.
        preview: Thumbnail data URL for images.
    """

    file: FileBlob
    id: str = ""
    status: QueueStatus = QueueStatus.PENDING
    progress: int = 0
    error: str | None = None
    result: Contribution | None = None
    preview: str | None = None

    @classmethod
    def for_file(cls, file: FileBlob) -> "QueueItem":
        return cls(file=file, id=str(uuid.uuid4()))


QueueSnapshot = tuple[QueueItem, ...]
Listener = Callable[[QueueSnapshot], Any]


@dataclass
class EnqueueOutcome:
    """Intake result plus the final queue snapshot of one enqueue call."""

    intake: IntakeResult
    snapshot: QueueSnapshot

    @property
    def succeeded(self) -> list[QueueItem]:
        return [q for q in self.snapshot if q.status == QueueStatus.SUCCEEDED]

    @property
    def failed(self) -> list[QueueItem]:
        return [q for q in self.snapshot if q.status == QueueStatus.FAILED]


class UploadQueueController:
    """Owns the upload queue and drives it through the backend.

    Args:
        client: Backend client used for ``upload_archive_item``.
        profile_id: Profile the uploads belong to.
        items: Working collection; every success is appended to it.
        config: Upload limits.
        visibility: Visibility sent with each upload.
    """

    def __init__(
        self,
        client: ArchiveBackendClient,
        profile_id: str,
        items: ArchiveItems | None = None,
        config: UploadConfig | None = None,
        visibility: VisibilityLevel = VisibilityLevel.DRAFT,
    ) -> None:
        self.client = client
        self.profile_id = profile_id
        self.items = items if items is not None else ArchiveItems()
        self.config = config or UploadConfig()
        self.visibility = visibility
        self._snapshot: QueueSnapshot = ()
        self._listeners: list[Listener] = []
        self._running = False

    # -------------------------------------------------------------------------
    # Snapshot and observers
    # -------------------------------------------------------------------------

    @property
    def snapshot(self) -> QueueSnapshot:
        return self._snapshot

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener with every new snapshot. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, snapshot: QueueSnapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            listener(snapshot)

    def _replace_item(self, item_id: str, **changes: Any) -> QueueItem:
        updated: QueueItem | None = None
        new_snapshot = []
        for queued in self._snapshot:
            if queued.id == item_id:
                queued = updated = replace(queued, **changes)
            new_snapshot.append(queued)
        if updated is None:
            raise KeyError(item_id)
        self._publish(tuple(new_snapshot))
        return updated

    def _find(self, item_id: str) -> QueueItem | None:
        return next((q for q in self._snapshot if q.id == item_id), None)

    @property
    def has_failed(self) -> bool:
        return any(q.status == QueueStatus.FAILED for q in self._snapshot)

    @property
    def has_succeeded(self) -> bool:
        return any(q.status == QueueStatus.SUCCEEDED for q in self._snapshot)

    @property
    def is_busy(self) -> bool:
        """True while a run is active or any item still waits for a worker."""
        return self._running or any(
            q.status in (QueueStatus.PENDING, QueueStatus.UPLOADING) for q in self._snapshot
        )

    def _begin(self, operation: str) -> None:
        if self._running:
            raise UploadInProgressError(operation)
        self._running = True

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def enqueue(self, files: Iterable[FileBlob]) -> EnqueueOutcome:
        """Check a selection, queue the accepted files and upload them.

        Rejected files never reach the backend. The queue is replaced by the
        accepted files, each ``pending`` at progress 0.

        Raises:
            UploadInProgressError: Another enqueue, process or retry is running.
        """
        self._begin("enqueue files")
        try:
            result = intake(files, self.config)
            queued = [QueueItem.for_file(file) for file in result.accepted]
            if self.config.generate_previews:
                previews = await asyncio.gather(
                    *(build_preview_for(q.file, self.config.preview_max_px) for q in queued)
                )
                queued = [replace(q, preview=p) for q, p in zip(queued, previews)]
            self._publish(tuple(queued))

            if result.notice:
                logger.info(f"Intake notice:\n{result.notice}")
            snapshot = await self._run_pool()
        finally:
            self._running = False
        return EnqueueOutcome(intake=result, snapshot=snapshot)

    async def process(self, queue: QueueSnapshot | None = None) -> QueueSnapshot:
        """Run the worker pool over the pending items.

        Args:
            queue: Snapshot to process. Defaults to the current snapshot.

        Returns:
            The snapshot after every worker has finished.

        Raises:
            UploadInProgressError: Another enqueue, process or retry is running.
        """
        self._begin("process the queue")
        try:
            if queue is not None:
                self._publish(tuple(queue))
            return await self._run_pool()
        finally:
            self._running = False

    async def retry(self, item_id: str) -> QueueItem:
        """Upload one failed item again, outside the pool.

        Sibling items are not touched. Items that are not ``failed`` are
        returned unchanged.

        Raises:
            KeyError: No queue item with that id.
            UploadInProgressError: Another enqueue, process or retry is running.
        """
        queued = self._find(item_id)
        if queued is None:
            raise KeyError(item_id)
        if queued.status != QueueStatus.FAILED:
            logger.debug(f"Retry skipped for {queued.file.name}: status {queued.status.value}")
            return queued

        self._begin("retry an upload")
        try:
            self._replace_item(item_id, status=QueueStatus.PENDING, progress=0, error=None)
            claimed = self._claim(item_id)
            return await self._run_item(claimed)
        finally:
            self._running = False

    async def retry_all_failed(self) -> QueueSnapshot:
        """Reset every failed item to pending and reprocess the whole queue.

        The full snapshot goes back through ``process``; succeeded items are
        left alone only because workers claim strictly on ``pending``.

        Raises:
            UploadInProgressError: Another enqueue, process or retry is running.
        """
        if self._running:
            raise UploadInProgressError("retry failed uploads")
        reset = tuple(
            replace(q, status=QueueStatus.PENDING, progress=0, error=None)
            if q.status == QueueStatus.FAILED
            else q
            for q in self._snapshot
        )
        return await self.process(reset)

    def clear(self) -> None:
        """Empty the queue.

        Raises:
            UploadInProgressError: Uploads are still running.
        """
        if self._running:
            raise UploadInProgressError("clear the queue")
        self._publish(())

    # -------------------------------------------------------------------------
    # Workers
    # -------------------------------------------------------------------------

    async def _run_pool(self) -> QueueSnapshot:
        pending = sum(1 for q in self._snapshot if q.status == QueueStatus.PENDING)
        worker_count = min(self.config.concurrency, pending)
        if worker_count == 0:
            return self._snapshot

        message = f"Uploading {pending} file(s) with {worker_count} worker(s)"
        with LogContext(message, logger=logger):
            workers = [asyncio.create_task(self._worker(n)) for n in range(worker_count)]
            await asyncio.gather(*workers)
        return self._snapshot

    async def _worker(self, worker_id: int) -> None:
        while True:
            next_item = next((q for q in self._snapshot if q.status == QueueStatus.PENDING), None)
            if next_item is None:
                logger.debug(f"Upload worker {worker_id} idle, exiting")
                return
            claimed = self._claim(next_item.id)
            await self._run_item(claimed)

    def _claim(self, item_id: str) -> QueueItem:
        return self._replace_item(item_id, status=QueueStatus.UPLOADING, progress=PROGRESS_CLAIMED)

    async def _run_item(self, queued: QueueItem) -> QueueItem:
        """Drive one claimed item to succeeded or failed. Never raises."""
        file = queued.file
        try:
            file_data = await encode_payload(file)
            self._replace_item(queued.id, progress=PROGRESS_ENCODED)

            contribution = await self.client.upload_archive_item(
                profile_id=self.profile_id,
                file_name=file.name,
                file_type=file.mime_type,
                file_size=file.size,
                file_data=file_data,
                title=title_from_filename(file.name),
                visibility=self.visibility,
            )
            self._replace_item(queued.id, progress=PROGRESS_SENT)
        except ArchiveError as e:
            logger.warning(f"Upload of {file.name} failed: {e.message}")
            return self._replace_item(
                queued.id, status=QueueStatus.FAILED, progress=0, error=e.user_message
            )
        except OSError as e:
            logger.warning(f"Could not read {file.name}: {e}")
            return self._replace_item(
                queued.id, status=QueueStatus.FAILED, progress=0, error=UPLOAD_FAILED_MESSAGE
            )

        self.items.append(contribution)
        logger.info(f"Uploaded {file.name}")
        return self._replace_item(
            queued.id,
            status=QueueStatus.SUCCEEDED,
            progress=PROGRESS_DONE,
            result=contribution,
        )
