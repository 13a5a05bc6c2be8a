"""Drag-and-drop reordering with optimistic apply and rollback.

A move only ever touches one ``(owner_profile_id, item_type)`` partition.
The new order is applied to the working collection at once, then the full
ordered id list for the profile is sent to the backend. If the backend says
no, the collection is put back exactly as it was before the move and a short
error banner is shown.

Example:
    >>> reorder = ReorderSubsystem(client, "profile-1", items)
    >>> await reorder.move(dragged_id="C", target_id="A")
    True
    >>> [i.id for i in items.by_type(ItemType.IMAGE)]
    ['C', 'A', 'B']
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from journey_archive.config import ReorderConfig
from journey_archive.core.collection import ArchiveItems
from journey_archive.core.models import Contribution
from journey_archive.core.ordering import move_id, partition_items, renumber, resequence
from journey_archive.errors import ArchiveError, ContentValidationError, SilentGuardViolation

if TYPE_CHECKING:
    from journey_archive.backend.client import ArchiveBackendClient

logger = logging.getLogger(__name__)

REORDER_FAILED_MESSAGE = "Failed to save new order. Reverting..."


class ReorderSubsystem:
    """Reorders and deletes contributions of one profile.

    Attributes:
        banner: Error text currently shown, or None.
    """

    def __init__(
        self,
        client: ArchiveBackendClient,
        profile_id: str,
        items: ArchiveItems,
        config: ReorderConfig | None = None,
    ) -> None:
        self.client = client
        self.profile_id = profile_id
        self.items = items
        self.config = config or ReorderConfig()
        self.banner: str | None = None
        self._banner_handle: asyncio.TimerHandle | None = None

    def _own_items(self) -> list[Contribution]:
        return [item for item in self.items if item.owner_profile_id == self.profile_id]

    async def move(self, dragged_id: str, target_id: str) -> bool:
        """Move dragged_id to target_id's position within their partition.

        A partition holding an item under review is read-only: the move is
        ignored without a backend call.

        Returns:
            True when the backend accepted the new order, False when it was
            rolled back or the partition is locked.

        Raises:
            KeyError: Either id is unknown.
            ContentValidationError: The items are in different partitions.
        """
        dragged = self.items.get(dragged_id)
        target = self.items.get(target_id)
        if dragged is None:
            raise KeyError(dragged_id)
        if target is None:
            raise KeyError(target_id)
        if dragged.partition_key != target.partition_key:
            raise ContentValidationError(
                "Items can only be reordered among items of the same type", field="item_type"
            )

        partitions = partition_items(self._own_items())
        moved_key = dragged.partition_key
        locked = next((item for item in partitions[moved_key] if item.is_locked), None)
        if locked is not None:
            logger.debug(SilentGuardViolation("display_order", locked.status.value).message)
            return False
        if dragged_id == target_id:
            return True

        known_good = self.items.snapshot()
        by_id = {item.id: item for item in partitions[moved_key]}
        new_order = move_id([item.id for item in partitions[moved_key]], dragged_id, target_id)
        moved = renumber([by_id[item_id] for item_id in new_order])

        ordered_ids = [item.id for item in moved]
        for key, group in partitions.items():
            if key != moved_key:
                ordered_ids.extend(item.id for item in group)

        for item in moved:
            self.items.put(item)

        try:
            await self.client.reorder_archive_items(self.profile_id, ordered_ids)
        except ArchiveError as e:
            logger.warning(f"Reorder rejected, restoring previous order: {e.message}")
            self.items.replace_all(known_good)
            self._show_banner(REORDER_FAILED_MESSAGE)
            return False

        logger.debug(f"Moved {dragged_id} to position {new_order.index(dragged_id) + 1}")
        return True

    async def delete(self, item_id: str) -> Contribution | None:
        """Delete a contribution and close the gap in its partition.

        Returns:
            The deleted item, or None when it is under review and was left alone.

        Raises:
            KeyError: Unknown item.
            ApplicationError, TransportError: The backend call failed; the
                collection is unchanged.
        """
        item = self.items.get(item_id)
        if item is None:
            raise KeyError(item_id)
        if item.is_locked:
            logger.debug(SilentGuardViolation("id", item.status.value).message)
            return None

        await self.client.delete_archive_item(item_id)

        self.items.remove(item_id)
        siblings = [i for i in self.items if i.partition_key == item.partition_key]
        for sibling in resequence(siblings):
            self.items.put(sibling)
        logger.info(f"Deleted {item_id}")
        return item

    # -------------------------------------------------------------------------
    # Error banner
    # -------------------------------------------------------------------------

    def _show_banner(self, message: str) -> None:
        self.banner = message
        if self._banner_handle is not None:
            self._banner_handle.cancel()
        loop = asyncio.get_running_loop()
        self._banner_handle = loop.call_later(self.config.error_banner_seconds, self.dismiss_banner)

    def dismiss_banner(self) -> None:
        self.banner = None
        if self._banner_handle is not None:
            self._banner_handle.cancel()
            self._banner_handle = None
