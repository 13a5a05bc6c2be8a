"""Working collection of contributions for one profile.

ArchiveItems is the caller-owned list the upload queue appends to, the batch
collector writes metadata into, and the reorder subsystem replaces. Entries
are pydantic records; updates replace the entry with a validated copy so a
snapshot taken earlier never changes underneath its holder.
"""

import logging
from collections.abc import Iterable, Iterator
from typing import Any

from journey_archive.core.models import Contribution, ItemType
from journey_archive.core.ordering import sort_by_display_order

logger = logging.getLogger(__name__)


class ArchiveItems:
    """Ordered, in-memory collection of Contribution records.

    Example:
        >>> items = ArchiveItems()
        >>> items.append(contribution)
        >>> snapshot = items.snapshot()
        >>> items.update(contribution.id, title="Cup final")
        >>> snapshot[0].title != items.get(contribution.id).title
        True
    """

    def __init__(self, items: Iterable[Contribution] | None = None) -> None:
        self._items: list[Contribution] = list(items or [])

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Contribution]:
        return iter(list(self._items))

    def __contains__(self, item_id: object) -> bool:
        return any(item.id == item_id for item in self._items)

    def snapshot(self) -> list[Contribution]:
        """Shallow copy of the current list."""
        return list(self._items)

    def replace_all(self, items: Iterable[Contribution]) -> None:
        """Replace the whole collection."""
        self._items = list(items)

    def append(self, item: Contribution) -> None:
        self._items.append(item)

    def get(self, item_id: str) -> Contribution | None:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def update(self, item_id: str, **fields: Any) -> Contribution | None:
        """Replace one entry with an updated, validated copy.

        Returns:
            The new record, or None if item_id is unknown.
        """
        for index, item in enumerate(self._items):
            if item.id == item_id:
                updated = item.model_copy(deep=True)
                for name, value in fields.items():
                    setattr(updated, name, value)
                self._items[index] = updated
                return updated
        logger.debug(f"Update skipped, unknown item {item_id}")
        return None

    def put(self, item: Contribution) -> None:
        """Insert or replace by id."""
        for index, existing in enumerate(self._items):
            if existing.id == item.id:
                self._items[index] = item
                return
        self._items.append(item)

    def remove(self, item_id: str) -> Contribution | None:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                return self._items.pop(index)
        return None

    def by_type(self, item_type: ItemType) -> list[Contribution]:
        """Items of one type in display order."""
        return sort_by_display_order(i for i in self._items if i.item_type == item_type)

    def ids(self) -> list[str]:
        return [item.id for item in self._items]
