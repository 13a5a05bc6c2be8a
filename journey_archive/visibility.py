"""Who may see a contribution.

Stewards see everything. Everyone else sees a contribution only once it is
approved, and only if its visibility is at or above the lowest tier their
role reaches:

    viewer       lowest tier seen     tiers seen
    public       public               public
    connection   connections          connections, public
    family       family               family, connections, public

``draft`` is below every ceiling, so draft-visibility items stay private even
when approved.
"""

from __future__ import annotations

from collections.abc import Iterable

from journey_archive.core.models import (
    VISIBILITY_ORDER,
    Contribution,
    ContributionStatus,
    ViewerRole,
    VisibilityLevel,
)

ROLE_CEILINGS: dict[ViewerRole, VisibilityLevel] = {
    ViewerRole.PUBLIC: VisibilityLevel.PUBLIC,
    ViewerRole.CONNECTION: VisibilityLevel.CONNECTIONS,
    ViewerRole.FAMILY: VisibilityLevel.FAMILY,
}

VISIBILITY_LABELS: dict[VisibilityLevel, str] = {
    VisibilityLevel.DRAFT: "Private draft",
    VisibilityLevel.FAMILY: "Family & trusted circle",
    VisibilityLevel.CONNECTIONS: "Connections",
    VisibilityLevel.PUBLIC: "Public",
}

STATUS_LABELS: dict[ContributionStatus, str] = {
    ContributionStatus.DRAFT: "Draft",
    ContributionStatus.SUBMITTED_FOR_REVIEW: "Under review",
    ContributionStatus.APPROVED: "Approved",
    ContributionStatus.REJECTED: "Not approved",
    ContributionStatus.NEEDS_CHANGES: "Changes requested",
}


def visible_levels(role: ViewerRole) -> list[VisibilityLevel]:
    """Tiers a role can see once content is approved."""
    if role == ViewerRole.STEWARD:
        return list(VISIBILITY_ORDER)
    ceiling = ROLE_CEILINGS[role]
    return [level for level in VISIBILITY_ORDER if level >= ceiling]


def is_disclosable(item: Contribution, role: ViewerRole) -> bool:
    """True when a viewer with role may see item."""
    if role == ViewerRole.STEWARD:
        return True
    if item.status != ContributionStatus.APPROVED:
        return False
    return item.visibility >= ROLE_CEILINGS[role]


def filter_disclosable(items: Iterable[Contribution], role: ViewerRole) -> list[Contribution]:
    return [item for item in items if is_disclosable(item, role)]


def disclosure_matrix(items: Iterable[Contribution]) -> dict[str, dict[ViewerRole, bool]]:
    """For previews: item id -> role -> disclosable."""
    return {item.id: {role: is_disclosable(item, role) for role in ViewerRole} for item in items}


def visibility_label(level: VisibilityLevel) -> str:
    return VISIBILITY_LABELS[level]


def status_label(status: ContributionStatus) -> str:
    return STATUS_LABELS[status]
