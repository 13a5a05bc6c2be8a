"""Core records and collections for Journey Archive."""

from journey_archive.core.collection import ArchiveItems
from journey_archive.core.models import (
    OWNER_MUTABLE_STATUSES,
    VISIBILITY_ORDER,
    Attachment,
    Contribution,
    ContributionStatus,
    ItemType,
    LinkedEntity,
    LinkedEntityType,
    Profile,
    ReviewableRecord,
    ReviewEvent,
    ViewerRole,
    VisibilityLevel,
    parse_tags,
    utc_now,
)

__all__ = [
    "OWNER_MUTABLE_STATUSES",
    "VISIBILITY_ORDER",
    "ArchiveItems",
    "Attachment",
    "Contribution",
    "ContributionStatus",
    "ItemType",
    "LinkedEntity",
    "LinkedEntityType",
    "Profile",
    "ReviewEvent",
    "ReviewableRecord",
    "ViewerRole",
    "VisibilityLevel",
    "parse_tags",
    "utc_now",
]
