"""Core data model for Journey Archive.

This module defines the records every other layer speaks about: the
Contribution (one unit of user-authored content attached to a profile), the
Profile that owns them, and the small enumerations that drive review and
disclosure decisions.

A Contribution is mirrored locally from the backend that owns it. The local
copy is what the upload queue appends to, what the batch collector edits,
what the reorder subsystem renumbers and what the visibility resolver filters.

The design prioritizes:
- Draft first (every new record starts as status=draft, visibility=draft)
- Ordinal visibility (levels compare by rank, never by string value)
- Timezone correctness (all datetimes are timezone-aware, naive means UTC)
- Wire tolerance (flat backend payloads fold into nested models)

Example:
    >>> item = Contribution(
    ...     owner_profile_id="profile-1",
    ...     item_type=ItemType.IMAGE,
    ...     title="First cap",
    ... )
    >>> item.status
    <ContributionStatus.DRAFT: 'draft'>
    >>> VisibilityLevel.FAMILY < VisibilityLevel.PUBLIC
    True
"""

import uuid as uuid_module
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


# =============================================================================
# Enums
# =============================================================================


class ItemType(str, Enum):
    """Kinds of contribution. Each kind is its own display-order partition.

    Attributes:
        IMAGE: Photographs and scans (jpeg, png, webp)
        DOCUMENT: PDFs such as letters, programmes, certificates
        TEXT: Short written pieces
        MOMENT: Timeline entries (milestones)
        PERSON: People acknowledged on the profile
    """

    IMAGE = "image"
    DOCUMENT = "document"
    TEXT = "text"
    MOMENT = "moment"
    PERSON = "person"

    @classmethod
    def from_mime_type(cls, mime_type: str) -> "ItemType":
        """Pick the item type for an uploaded file."""
        if mime_type.lower().startswith("image/"):
            return cls.IMAGE
        return cls.DOCUMENT


class ContributionStatus(str, Enum):
    """Review workflow status.

    Attributes:
        DRAFT: Work in progress, owner-mutable
        SUBMITTED_FOR_REVIEW: With the steward, read-only for the owner
        APPROVED: Reviewed, disclosable according to visibility
        REJECTED: Reviewed and not approved, owner-mutable, resubmittable
        NEEDS_CHANGES: Steward asked for changes, owner-mutable, resubmittable
    """

    DRAFT = "draft"
    SUBMITTED_FOR_REVIEW = "submitted_for_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_CHANGES = "needs_changes"

    @property
    def is_owner_mutable(self) -> bool:
        return self in OWNER_MUTABLE_STATUSES


OWNER_MUTABLE_STATUSES = frozenset(
    {
        ContributionStatus.DRAFT,
        ContributionStatus.REJECTED,
        ContributionStatus.NEEDS_CHANGES,
    }
)


class VisibilityLevel(str, Enum):
    """Disclosure tier, totally ordered: draft < family < connections < public.

    Comparison operators use the position in VISIBILITY_ORDER rather than the
    string value, so a new tier can be inserted without breaking threshold
    checks.

    Attributes:
        DRAFT: Only the owner and stewards
        FAMILY: Family members and trusted circle
        CONNECTIONS: The owner's connections
        PUBLIC: Everyone (after approval)
    """

    DRAFT = "draft"
    FAMILY = "family"
    CONNECTIONS = "connections"
    PUBLIC = "public"

    @classmethod
    def _missing_(cls, value: object) -> "VisibilityLevel | None":
        # Older records use the long form of the draft tier
        if isinstance(value, str) and value.lower() == "private_draft":
            return cls.DRAFT
        return None

    @property
    def rank(self) -> int:
        return VISIBILITY_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, VisibilityLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, VisibilityLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, VisibilityLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, VisibilityLevel):
            return NotImplemented
        return self.rank >= other.rank


VISIBILITY_ORDER: tuple[VisibilityLevel, ...] = (
    VisibilityLevel.DRAFT,
    VisibilityLevel.FAMILY,
    VisibilityLevel.CONNECTIONS,
    VisibilityLevel.PUBLIC,
)


class ViewerRole(str, Enum):
    """Simulated viewer used for previews and disclosure checks."""

    PUBLIC = "public"
    CONNECTION = "connection"
    FAMILY = "family"
    STEWARD = "steward"


class LinkedEntityType(str, Enum):
    """Kinds of entity a contribution can reference."""

    CLUB = "club"
    PERSON = "person"
    ORGANISATION = "organisation"
    PLACE = "place"
    MOMENT = "moment"


# =============================================================================
# Supporting Models
# =============================================================================


class Attachment(BaseModel):
    """Stored blob behind a contribution.

    Attributes:
        storage_path: Object-store path of the blob
        mime_type: Content type recorded at upload
        byte_size: Size in bytes
    """

    storage_path: str
    mime_type: str
    byte_size: int = Field(default=0, ge=0)


class LinkedEntity(BaseModel):
    """Reference from a contribution to a club, person, place, etc.

    A suggestion is free text the owner typed. It is not validated against
    any registry until a steward confirms it.

    Example:
        >>> link = LinkedEntity.suggestion("Old Boys RFC")
        >>> link.is_suggestion
        True
        >>> link.confirm("club-42").is_suggestion
        False
    """

    entity_type: LinkedEntityType = LinkedEntityType.CLUB
    entity_id: str
    name: str
    is_suggestion: bool = False

    @classmethod
    def suggestion(
        cls, name: str, entity_type: LinkedEntityType = LinkedEntityType.CLUB
    ) -> "LinkedEntity":
        """Create an unconfirmed suggestion from free text."""
        name = name.strip()
        if not name:
            raise ValueError("Suggestion name must not be empty")
        return cls(
            entity_type=entity_type,
            entity_id=f"suggestion-{uuid_module.uuid4().hex[:12]}",
            name=name,
            is_suggestion=True,
        )

    def confirm(self, entity_id: str) -> "LinkedEntity":
        """Return a confirmed copy pointing at a registry id."""
        return self.model_copy(update={"entity_id": entity_id, "is_suggestion": False})


class ReviewEvent(BaseModel):
    """One step in a record's review history."""

    action: str
    at: datetime = Field(default_factory=utc_now)
    note: str | None = None
    actor: str | None = None


# =============================================================================
# Reviewable Records
# =============================================================================


class ReviewableRecord(BaseModel):
    """Fields shared by everything that goes through review.

    Attributes:
        status: Current review status
        submitted_at: When the record entered review (cleared on withdraw)
        approved_at: When a steward approved it
        rejected_at: When a steward rejected it or asked for changes
        reviewer_note: Feedback attached on rejection / request for changes
        updated_at: Last local or remote modification
        review_history: Every review step taken, oldest first
    """

    status: ContributionStatus = ContributionStatus.DRAFT
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    reviewer_note: str | None = None
    updated_at: datetime | None = None
    review_history: list[ReviewEvent] = Field(default_factory=list)

    model_config = {"validate_assignment": True}

    @field_validator(
        "submitted_at", "approved_at", "rejected_at", "updated_at", mode="after"
    )
    @classmethod
    def ensure_timezone_aware(cls, v: datetime | None) -> datetime | None:
        """Treat naive datetimes as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def is_locked(self) -> bool:
        """True while the owner may not edit (with the steward)."""
        return self.status == ContributionStatus.SUBMITTED_FOR_REVIEW

    @property
    def is_owner_mutable(self) -> bool:
        return self.status.is_owner_mutable


class Contribution(ReviewableRecord):
    """One unit of content attached to a profile.

    Attributes:
        id: Backend identifier
        owner_profile_id: Profile the contribution belongs to
        item_type: Kind of content (also the display-order partition)
        visibility: Disclosure tier (only effective once approved)
        display_order: 1-based position within (owner_profile_id, item_type)
        title: Short title
        description: Longer description
        caption: One-line caption
        date_approximate: Free-text date ("Summer 1987")
        source_attribution: Who supplied the material
        rights_status: Rights category (family_collection, public_domain, ...)
        tags: Free tags
        attachment: Stored blob, when the contribution has one
        linked_entities: Confirmed links and unconfirmed suggestions
        created_at: Creation time
        signed_url: Short-lived read URL from the backend (never sent back)

    Example:
        >>> data = {"id": "a1", "owner_profile_id": "p1", "item_type": "image",
        ...         "storage_path": "p1/a1.jpg", "mime_type": "image/jpeg",
        ...         "file_size": 2048}
        >>> Contribution.from_payload(data).attachment.byte_size
        2048
    """

    id: str = Field(default_factory=lambda: str(uuid_module.uuid4()))
    owner_profile_id: str
    item_type: ItemType
    visibility: VisibilityLevel = VisibilityLevel.DRAFT
    display_order: int = Field(default=0, ge=0)
    title: str = ""
    description: str | None = None
    caption: str | None = None
    date_approximate: str | None = None
    source_attribution: str | None = None
    rights_status: str | None = None
    tags: list[str] = Field(default_factory=list)
    attachment: Attachment | None = None
    linked_entities: list[LinkedEntity] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    signed_url: str | None = None

    @model_validator(mode="before")
    @classmethod
    def fold_flat_attachment(cls, data: Any) -> Any:
        """Accept the flat storage_path/mime_type/file_size wire shape."""
        if not isinstance(data, dict) or data.get("attachment") is not None:
            return data
        if "storage_path" not in data:
            return data
        data = dict(data)
        storage_path = data.pop("storage_path")
        mime_type = data.pop("mime_type", None) or "application/octet-stream"
        byte_size = data.pop("file_size", None) or 0
        if storage_path:
            data["attachment"] = {
                "storage_path": storage_path,
                "mime_type": mime_type,
                "byte_size": byte_size,
            }
        return data

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return parse_tags(v)
        return v

    @property
    def partition_key(self) -> tuple[str, ItemType]:
        """Display-order partition this record belongs to."""
        return (self.owner_profile_id, self.item_type)

    @property
    def suggestions(self) -> list[LinkedEntity]:
        return [link for link in self.linked_entities if link.is_suggestion]

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "Contribution":
        """Build from a backend item payload.

        Also accepts ``profile_id`` in place of ``owner_profile_id``.
        """
        data = dict(data)
        if "owner_profile_id" not in data and "profile_id" in data:
            data["owner_profile_id"] = data.pop("profile_id")
        return cls.model_validate(data)

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the wire, flattening the attachment."""
        data = self.model_dump(mode="json", exclude={"attachment", "signed_url"})
        if self.attachment is not None:
            data["storage_path"] = self.attachment.storage_path
            data["mime_type"] = self.attachment.mime_type
            data["file_size"] = self.attachment.byte_size
        return data


class Profile(ReviewableRecord):
    """The owner's profile. Submitted for review as a whole.

    Attributes:
        id: Backend identifier
        owner_id: Account that owns the profile
        full_name: Full name
        title: Display title (preferred over full_name for readiness)
        introduction: Introductory text (50 to 1200 characters to submit)
        country: Country, passed on to reviewer notifications
        visibility_default: Default tier offered for new contributions
    """

    id: str = Field(default_factory=lambda: str(uuid_module.uuid4()))
    owner_id: str | None = None
    full_name: str = ""
    title: str = ""
    introduction: str = ""
    country: str | None = None
    visibility_default: VisibilityLevel = VisibilityLevel.DRAFT

    @property
    def display_name(self) -> str:
        """Name used for readiness and notifications."""
        return self.title.strip() or self.full_name.strip()


# =============================================================================
# Helpers
# =============================================================================


def parse_tags(tag_string: str) -> list[str]:
    """Split a comma-separated tag string, dropping blanks.

    Example:
        >>> parse_tags(" rugby, , 1987 ,cup")
        ['rugby', '1987', 'cup']
    """
    return [tag.strip() for tag in tag_string.split(",") if tag.strip()]
