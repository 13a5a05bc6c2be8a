"""Review status transitions.

    draft ----------------submit----------> submitted_for_review
    rejected / needs_changes --submit-----> submitted_for_review
    submitted_for_review --withdraw-------> draft
    submitted_for_review --approve--------> approved
    submitted_for_review --reject---------> rejected
    submitted_for_review --request_changes> needs_changes

Submit and withdraw are owner actions; the rest are steward decisions made
outside this process and mirrored locally. Readiness for submit is checked by
the caller (see ``review.readiness``), not here.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, TypeVar

from journey_archive.core.models import ContributionStatus, ReviewableRecord, ReviewEvent, utc_now
from journey_archive.errors import InvalidTransitionError

R = TypeVar("R", bound=ReviewableRecord)


class ReviewAction(str, Enum):
    SUBMIT = "submit"
    WITHDRAW = "withdraw"
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_CHANGES = "request_changes"

    @property
    def is_steward_decision(self) -> bool:
        return self in STEWARD_ACTIONS


STEWARD_ACTIONS = frozenset(
    {ReviewAction.APPROVE, ReviewAction.REJECT, ReviewAction.REQUEST_CHANGES}
)

_S = ContributionStatus
TRANSITIONS: dict[tuple[ContributionStatus, ReviewAction], ContributionStatus] = {
    (_S.DRAFT, ReviewAction.SUBMIT): _S.SUBMITTED_FOR_REVIEW,
    (_S.REJECTED, ReviewAction.SUBMIT): _S.SUBMITTED_FOR_REVIEW,
    (_S.NEEDS_CHANGES, ReviewAction.SUBMIT): _S.SUBMITTED_FOR_REVIEW,
    (_S.SUBMITTED_FOR_REVIEW, ReviewAction.WITHDRAW): _S.DRAFT,
    (_S.SUBMITTED_FOR_REVIEW, ReviewAction.APPROVE): _S.APPROVED,
    (_S.SUBMITTED_FOR_REVIEW, ReviewAction.REJECT): _S.REJECTED,
    (_S.SUBMITTED_FOR_REVIEW, ReviewAction.REQUEST_CHANGES): _S.NEEDS_CHANGES,
}


def next_status(status: ContributionStatus, action: ReviewAction) -> ContributionStatus:
    """Status reached by applying action.

    Raises:
        InvalidTransitionError: The action is not allowed from status.
    """
    try:
        return TRANSITIONS[(status, action)]
    except KeyError:
        raise InvalidTransitionError(status.value, action.value) from None


def permitted_actions(status: ContributionStatus) -> list[ReviewAction]:
    """All actions the table allows from status, in declaration order."""
    return [action for (source, action) in TRANSITIONS if source == status]


def transition(
    record: R,
    action: ReviewAction,
    note: str | None = None,
    at: datetime | None = None,
    actor: str | None = None,
    clear_note_on_resubmit: bool = True,
) -> R:
    """Return a copy of record moved along one transition.

    Timestamps follow the action: submit sets ``submitted_at``, withdraw
    clears it, approve sets ``approved_at``, reject and request_changes set
    ``rejected_at`` and attach the reviewer note. Every transition appends a
    ReviewEvent.

    Raises:
        InvalidTransitionError: The action is not allowed from the current status.
    """
    target = next_status(record.status, action)
    at = at or utc_now()
    update: dict[str, Any] = {
        "status": target,
        "updated_at": at,
        "review_history": [
            *record.review_history,
            ReviewEvent(action=action.value, at=at, note=note, actor=actor),
        ],
    }

    if action == ReviewAction.SUBMIT:
        update["submitted_at"] = at
        if clear_note_on_resubmit:
            update["reviewer_note"] = None
    elif action == ReviewAction.WITHDRAW:
        update["submitted_at"] = None
    elif action == ReviewAction.APPROVE:
        update["approved_at"] = at
    else:
        update["rejected_at"] = at
        update["reviewer_note"] = note

    # Round-trip through validation so timestamps are normalised
    return type(record).model_validate({**record.model_dump(), **update})
