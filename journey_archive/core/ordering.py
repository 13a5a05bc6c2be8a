"""Display-order helpers.

Display order is unique and contiguous within a partition
``(owner_profile_id, item_type)``. Every renumbering here is a full
re-sequence 1..N of the partitions it touches; sparse numbering is never
produced.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence

from journey_archive.core.models import Contribution, ItemType

PartitionKey = tuple[str, ItemType]


def sort_by_display_order(items: Iterable[Contribution]) -> list[Contribution]:
    """Stable sort by display_order (ties keep their current order)."""
    return sorted(items, key=lambda item: item.display_order)


def partition_items(
    items: Iterable[Contribution],
) -> dict[PartitionKey, list[Contribution]]:
    """Group items by partition, each group sorted by display_order."""
    groups: dict[PartitionKey, list[Contribution]] = defaultdict(list)
    for item in items:
        groups[item.partition_key].append(item)
    return {key: sort_by_display_order(group) for key, group in groups.items()}


def renumber(items: Sequence[Contribution]) -> list[Contribution]:
    """Assign 1..N to items in the given sequence order.

    Returns copies; the inputs are left untouched.
    """
    return [
        item if item.display_order == position else item.model_copy(update={"display_order": position})
        for position, item in enumerate(items, start=1)
    ]


def resequence(items: Iterable[Contribution]) -> list[Contribution]:
    """Renumber every partition 1..N, preserving relative order.

    The result lists partitions in first-seen order, each sorted by its new
    display_order.

    Example:
        >>> [i.display_order for i in resequence(items_with_orders_2_5_9)]
        [1, 2, 3]
    """
    result: list[Contribution] = []
    for group in partition_items(items).values():
        result.extend(renumber(group))
    return result


def move_id(order: Sequence[str], dragged_id: str, target_id: str) -> list[str]:
    """Remove dragged_id and insert it at target_id's original index.

    Example:
        >>> move_id(["A", "B", "C"], "C", "A")
        ['C', 'A', 'B']
        >>> move_id(["A", "B", "C"], "A", "C")
        ['B', 'C', 'A']
    """
    order = list(order)
    dragged_index = order.index(dragged_id)
    target_index = order.index(target_id)
    order.pop(dragged_index)
    order.insert(target_index, dragged_id)
    return order


def apply_ordered_ids(
    items: Iterable[Contribution], ordered_ids: Sequence[str]
) -> list[Contribution]:
    """Recompute ranks from a full ordered id list.

    Each partition is renumbered by the position of its members in
    ordered_ids. Items missing from the list keep their relative order after
    the listed ones.
    """
    position = {item_id: index for index, item_id in enumerate(ordered_ids)}
    fallback = len(position)
    result: list[Contribution] = []
    for group in partition_items(items).values():
        ranked = sorted(
            enumerate(group),
            key=lambda pair: (position.get(pair[1].id, fallback), pair[0]),
        )
        result.extend(renumber([item for _, item in ranked]))
    return result
