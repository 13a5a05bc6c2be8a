"""Review state machine, readiness, read-only guard and workflow."""

from journey_archive.review.state_machine import (
    STEWARD_ACTIONS,
    TRANSITIONS,
    ReviewAction,
    next_status,
    permitted_actions,
    transition,
)
from journey_archive.review.readiness import ReadinessReport, available_actions, check_readiness
from journey_archive.review.guard import (
    MutationResult,
    apply_mutation,
    guarded_update,
    is_field_locked,
    set_field,
)
from journey_archive.review.workflow import ReviewWorkflow

__all__ = [
    "STEWARD_ACTIONS",
    "TRANSITIONS",
    "MutationResult",
    "ReadinessReport",
    "ReviewAction",
    "ReviewWorkflow",
    "apply_mutation",
    "available_actions",
    "check_readiness",
    "guarded_update",
    "is_field_locked",
    "next_status",
    "permitted_actions",
    "set_field",
    "transition",
]
