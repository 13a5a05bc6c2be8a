"""One owner's editing session.

ArchiveSession wires the pieces together for one profile: a backend client,
the working item collection, the upload queue, the review workflow and the
reorder subsystem. The CLI uses it, and it is the simplest way to drive the
whole flow from code.

Example:
    >>> session = ArchiveSession.from_config(profile, get_config())
    >>> outcome = await session.upload([FileBlob.from_path("cup_final.jpg")])
    >>> collector = session.open_batch(outcome.snapshot)
    >>> await collector.save()
    >>> await session.submit()
    >>> await session.aclose()
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from journey_archive.backend.client import ArchiveBackendClient, Transport
from journey_archive.backend.memory import InMemoryBackend
from journey_archive.backend.transport import HttpTransport
from journey_archive.config import AppConfig
from journey_archive.core.collection import ArchiveItems
from journey_archive.core.models import Contribution, Profile, ViewerRole, VisibilityLevel
from journey_archive.errors import ArchiveError
from journey_archive.review.guard import guarded_update, set_field
from journey_archive.review.readiness import ReadinessReport
from journey_archive.review.state_machine import ReviewAction
from journey_archive.review.workflow import ReviewWorkflow
from journey_archive.reorder import ReorderSubsystem
from journey_archive.upload.batch import BatchMetadataCollector
from journey_archive.upload.intake import FileBlob
from journey_archive.upload.queue import EnqueueOutcome, QueueSnapshot, UploadQueueController
from journey_archive.visibility import filter_disclosable

logger = logging.getLogger(__name__)


def build_transport(config: AppConfig) -> Transport:
    """HTTP transport when a backend URL is configured, in-memory otherwise."""
    if config.uses_memory_backend():
        logger.info("No backend URL configured, using the in-memory backend")
        return InMemoryBackend(upload_config=config.upload)
    return HttpTransport.from_config(config.backend)


class ArchiveSession:
    """Facade over the upload, review and reorder components for one profile.

    Attributes:
        profile: The owner's profile (replaced on submit and withdraw).
        items: Working collection of the profile's contributions.
        client: Backend client.
        uploads: Upload queue controller.
        review: Review workflow.
        reorder: Reorder subsystem.
    """

    def __init__(
        self,
        profile: Profile,
        client: ArchiveBackendClient,
        config: AppConfig | None = None,
        items: Iterable[Contribution] | None = None,
        visibility: VisibilityLevel | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.profile = profile
        self.client = client
        self.items = ArchiveItems(items)
        self.uploads = UploadQueueController(
            client,
            profile.id,
            self.items,
            self.config.upload,
            visibility=visibility or profile.visibility_default,
        )
        self.review = ReviewWorkflow(client, self.items, self.config.review)
        self.reorder = ReorderSubsystem(client, profile.id, self.items, self.config.reorder)

    @classmethod
    def from_config(
        cls,
        profile: Profile,
        config: AppConfig,
        transport: Transport | None = None,
        **kwargs: Any,
    ) -> "ArchiveSession":
        client = ArchiveBackendClient(
            transport or build_transport(config),
            profile_function=config.backend.profile_function,
            notification_function=config.backend.notification_function,
        )
        return cls(profile, client, config, **kwargs)

    # -------------------------------------------------------------------------
    # Uploads
    # -------------------------------------------------------------------------

    async def upload(self, files: Iterable[FileBlob]) -> EnqueueOutcome:
        return await self.uploads.enqueue(files)

    def open_batch(self, snapshot: QueueSnapshot | None = None) -> BatchMetadataCollector | None:
        """Metadata collector for the succeeded uploads of the last batch."""
        return BatchMetadataCollector.from_snapshot(
            snapshot if snapshot is not None else self.uploads.snapshot, self.client, self.items
        )

    # -------------------------------------------------------------------------
    # Editing
    # -------------------------------------------------------------------------

    async def edit_item(self, item_id: str, field: str, value: Any) -> Any:
        """Change one field of a contribution and persist it.

        A locked field is left alone and its current value returned.
        """
        item = self.items.get(item_id)
        if item is None:
            raise KeyError(item_id)
        result = guarded_update(self.items, item_id, field, value)
        if not result.applied:
            return result.current

        try:
            await self.client.update_archive_item(item_id, **{field: result.current})
        except ArchiveError:
            self.items.put(item)
            raise
        return result.current

    def edit_profile(self, field: str, value: Any) -> Any:
        """Change one profile field locally. Locked profiles ignore the change."""
        return set_field(self.profile, field, value)

    # -------------------------------------------------------------------------
    # Review
    # -------------------------------------------------------------------------

    def readiness(self) -> ReadinessReport:
        return self.review.readiness(self.profile)

    def available_actions(self) -> list[ReviewAction]:
        return self.review.available_actions(self.profile)

    async def submit(self) -> Profile:
        self.profile = await self.review.submit(self.profile)
        return self.profile

    async def withdraw(self) -> Profile:
        self.profile = await self.review.withdraw(self.profile)
        return self.profile

    # -------------------------------------------------------------------------
    # Ordering and preview
    # -------------------------------------------------------------------------

    async def move(self, dragged_id: str, target_id: str) -> bool:
        return await self.reorder.move(dragged_id, target_id)

    async def delete(self, item_id: str) -> Contribution | None:
        return await self.reorder.delete(item_id)

    def preview(self, role: ViewerRole) -> list[Contribution]:
        """Items a viewer with role would see."""
        return filter_disclosable(self.items, role)

    async def aclose(self) -> None:
        transport = self.client.transport
        if isinstance(transport, HttpTransport):
            await transport.aclose()
