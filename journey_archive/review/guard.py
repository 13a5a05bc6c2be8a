"""Read-only enforcement for records under review.

Editing entry points call ``set_field`` (or ``guarded_update`` for a working
collection). When the record is locked nothing changes and the current value
comes back, with no error shown. The MutationResult underneath records why,
for tests and logs.

Lock rules:
- ``submitted_for_review``: every field is locked.
- ``approved``: only ``visibility`` may change.
- ``draft``, ``rejected``, ``needs_changes``: every editable field may change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from journey_archive.core.collection import ArchiveItems
from journey_archive.core.models import ReviewableRecord, utc_now
from journey_archive.errors import ContentValidationError, SilentGuardViolation

logger = logging.getLogger(__name__)

# Fields that only the review workflow, the backend or reordering may set
PROTECTED_FIELDS = frozenset(
    {
        "id",
        "owner_profile_id",
        "owner_id",
        "item_type",
        "status",
        "submitted_at",
        "approved_at",
        "rejected_at",
        "reviewer_note",
        "review_history",
        "created_at",
        "updated_at",
        "display_order",
        "attachment",
        "signed_url",
    }
)

ALWAYS_SETTABLE = frozenset({"visibility"})


@dataclass(frozen=True)
class MutationResult:
    """What an attempted field change did.

    Attributes:
        field: Field that was targeted.
        applied: True when the value was written.
        previous: Value before the call.
        current: Value after the call (equal to previous when not applied).
        violation: Set when the lock blocked the change.
    """

    field: str
    applied: bool
    previous: Any
    current: Any
    violation: SilentGuardViolation | None = None


def is_field_locked(record: ReviewableRecord, field: str) -> bool:
    if record.is_locked:
        return True
    if record.is_owner_mutable:
        return False
    return field not in ALWAYS_SETTABLE


def _check_editable(record: ReviewableRecord, field: str) -> None:
    if field in PROTECTED_FIELDS or field not in type(record).model_fields:
        raise ContentValidationError(f"'{field}' cannot be edited", field=field)


def apply_mutation(record: ReviewableRecord, field: str, value: Any) -> MutationResult:
    """Write value to record in place unless the field is locked.

    Raises:
        ContentValidationError: The field is not editable or the value is invalid.
    """
    _check_editable(record, field)
    previous = getattr(record, field)

    if is_field_locked(record, field):
        violation = SilentGuardViolation(field, record.status.value)
        logger.debug(violation.message)
        return MutationResult(field, False, previous, previous, violation)

    try:
        setattr(record, field, value)
    except ValidationError as e:
        raise ContentValidationError(f"Invalid value for {field}: {value!r}", field=field) from e
    record.updated_at = utc_now()
    return MutationResult(field, True, previous, getattr(record, field))


def set_field(record: ReviewableRecord, field: str, value: Any) -> Any:
    """Editing entry point: apply the change if allowed and return the field's value."""
    return apply_mutation(record, field, value).current


def guarded_update(items: ArchiveItems, item_id: str, field: str, value: Any) -> MutationResult:
    """Like apply_mutation, for an entry of a working collection.

    The entry is replaced by an updated copy; a locked entry is left as is.

    Raises:
        KeyError: Unknown item.
        ContentValidationError: The field is not editable or the value is invalid.
    """
    item = items.get(item_id)
    if item is None:
        raise KeyError(item_id)
    draft = item.model_copy(deep=True)
    result = apply_mutation(draft, field, value)
    if result.applied:
        items.put(draft)
    return result
