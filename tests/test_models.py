"""Unit tests for the records in journey_archive/core."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from journey_archive.core.collection import ArchiveItems
from journey_archive.core.models import (
    VISIBILITY_ORDER,
    Contribution,
    ContributionStatus,
    ItemType,
    LinkedEntity,
    Profile,
    VisibilityLevel,
    parse_tags,
)
from journey_archive.core.ordering import apply_ordered_ids, move_id, resequence

# =============================================================================
# Enum Tests
# =============================================================================


class TestVisibilityLevel:
    """Tests for the ordinal visibility enum."""

    def test_total_order(self) -> None:
        assert VisibilityLevel.DRAFT < VisibilityLevel.FAMILY
        assert VisibilityLevel.FAMILY < VisibilityLevel.CONNECTIONS
        assert VisibilityLevel.CONNECTIONS < VisibilityLevel.PUBLIC
        assert sorted(reversed(VISIBILITY_ORDER)) == list(VISIBILITY_ORDER)

    def test_order_is_not_alphabetical(self) -> None:
        """'connections' < 'draft' as strings, but not as tiers."""
        assert VisibilityLevel.CONNECTIONS > VisibilityLevel.DRAFT

    def test_legacy_private_draft_value(self) -> None:
        assert VisibilityLevel("private_draft") is VisibilityLevel.DRAFT

    def test_unknown_value_rejected(self) -> None:
        with pytest.raises(ValueError):
            VisibilityLevel("secret")


class TestContributionStatus:
    """Tests for owner mutability per status."""

    @pytest.mark.parametrize(
        "status,mutable",
        [
            (ContributionStatus.DRAFT, True),
            (ContributionStatus.SUBMITTED_FOR_REVIEW, False),
            (ContributionStatus.APPROVED, False),
            (ContributionStatus.REJECTED, True),
            (ContributionStatus.NEEDS_CHANGES, True),
        ],
    )
    def test_is_owner_mutable(self, status: ContributionStatus, mutable: bool) -> None:
        assert status.is_owner_mutable is mutable

    def test_item_type_from_mime(self) -> None:
        assert ItemType.from_mime_type("image/webp") is ItemType.IMAGE
        assert ItemType.from_mime_type("application/pdf") is ItemType.DOCUMENT


# =============================================================================
# Contribution Tests
# =============================================================================


class TestContribution:
    """Tests for the Contribution model."""

    def test_defaults_are_draft(self) -> None:
        item = Contribution(owner_profile_id="p1", item_type=ItemType.TEXT)
        assert item.status == ContributionStatus.DRAFT
        assert item.visibility == VisibilityLevel.DRAFT
        assert item.tags == []
        assert not item.is_locked

    def test_flat_payload_folds_attachment(self) -> None:
        item = Contribution.from_payload(
            {
                "id": "a1",
                "profile_id": "p1",
                "item_type": "image",
                "storage_path": "p1/a1/cup.jpg",
                "mime_type": "image/jpeg",
                "file_size": 2048,
            }
        )
        assert item.owner_profile_id == "p1"
        assert item.attachment is not None
        assert item.attachment.storage_path == "p1/a1/cup.jpg"
        assert item.attachment.byte_size == 2048

    def test_to_payload_flattens_and_drops_signed_url(self) -> None:
        item = Contribution.from_payload(
            {
                "id": "a1",
                "owner_profile_id": "p1",
                "item_type": "document",
                "storage_path": "p1/a1/letter.pdf",
                "mime_type": "application/pdf",
                "file_size": 10,
                "signed_url": "https://example.org/x",
            }
        )
        payload = item.to_payload()
        assert payload["storage_path"] == "p1/a1/letter.pdf"
        assert "attachment" not in payload
        assert "signed_url" not in payload

    def test_tags_from_string(self) -> None:
        item = Contribution(owner_profile_id="p1", item_type=ItemType.IMAGE, tags="rugby, 1987")
        assert item.tags == ["rugby", "1987"]

    def test_naive_datetime_becomes_utc(self) -> None:
        item = Contribution(
            owner_profile_id="p1",
            item_type=ItemType.IMAGE,
            submitted_at=datetime(2024, 5, 1, 12, 0),
        )
        assert item.submitted_at.tzinfo == timezone.utc

    def test_negative_display_order_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Contribution(owner_profile_id="p1", item_type=ItemType.IMAGE, display_order=-1)

    def test_partition_key(self, make_item) -> None:
        item = make_item("A", ItemType.DOCUMENT)
        assert item.partition_key == ("profile-1", ItemType.DOCUMENT)


class TestLinkedEntity:
    """Tests for suggestions and confirmed links."""

    def test_suggestion_has_prefixed_id(self) -> None:
        link = LinkedEntity.suggestion("  Old Boys RFC ")
        assert link.is_suggestion
        assert link.entity_id.startswith("suggestion-")
        assert link.name == "Old Boys RFC"

    def test_confirm(self) -> None:
        confirmed = LinkedEntity.suggestion("Old Boys RFC").confirm("club-42")
        assert not confirmed.is_suggestion
        assert confirmed.entity_id == "club-42"

    def test_empty_suggestion_rejected(self) -> None:
        with pytest.raises(ValueError):
            LinkedEntity.suggestion("   ")

    def test_contribution_lists_suggestions(self, make_item) -> None:
        item = make_item(
            "A",
            linked_entities=[
                LinkedEntity.suggestion("Old Boys RFC"),
                LinkedEntity(entity_id="club-1", name="Harlequins"),
            ],
        )
        assert [link.name for link in item.suggestions] == ["Old Boys RFC"]


class TestProfile:
    def test_display_name_prefers_title(self) -> None:
        assert Profile(title=" Coach ", full_name="Ada").display_name == "Coach"
        assert Profile(title="  ", full_name=" Ada ").display_name == "Ada"


def test_parse_tags() -> None:
    assert parse_tags(" rugby, , 1987 ,cup") == ["rugby", "1987", "cup"]
    assert parse_tags("") == []


# =============================================================================
# Ordering Tests
# =============================================================================


class TestOrdering:
    """Tests for display-order helpers."""

    def test_move_before(self) -> None:
        assert move_id(["A", "B", "C"], "C", "A") == ["C", "A", "B"]

    def test_move_after(self) -> None:
        assert move_id(["A", "B", "C"], "A", "C") == ["B", "C", "A"]

    def test_resequence_closes_gaps_per_partition(self, make_item) -> None:
        result = resequence(
            [
                make_item("A", display_order=2),
                make_item("B", display_order=5),
                make_item("D", ItemType.DOCUMENT, display_order=7),
                make_item("C", display_order=9),
            ]
        )
        orders = {item.id: item.display_order for item in result}
        assert orders == {"A": 1, "B": 2, "C": 3, "D": 1}

    def test_apply_ordered_ids(self, make_item) -> None:
        source = [
            make_item("A", display_order=1),
            make_item("B", display_order=2),
            make_item("D", ItemType.DOCUMENT, display_order=1),
        ]
        result = apply_ordered_ids(source, ["B", "D", "A"])
        orders = {item.id: item.display_order for item in result}
        assert orders == {"B": 1, "A": 2, "D": 1}

    def test_renumbering_does_not_touch_inputs(self, make_item) -> None:
        original = make_item("A", display_order=4)
        resequence([original])
        assert original.display_order == 4


# =============================================================================
# Collection Tests
# =============================================================================


class TestArchiveItems:
    """Tests for the working collection."""

    def test_update_replaces_entry(self, make_item) -> None:
        items = ArchiveItems([make_item("A")])
        before = items.snapshot()
        items.update("A", title="Cup final")
        assert items.get("A").title == "Cup final"
        assert before[0].title == "Item A"

    def test_update_validates(self, make_item) -> None:
        items = ArchiveItems([make_item("A")])
        with pytest.raises(ValidationError):
            items.update("A", visibility="secret")

    def test_update_unknown_returns_none(self) -> None:
        assert ArchiveItems().update("missing", title="x") is None

    def test_by_type_sorted(self, make_item) -> None:
        items = ArchiveItems(
            [
                make_item("B", display_order=2),
                make_item("D", ItemType.DOCUMENT),
                make_item("A", display_order=1),
            ]
        )
        assert [i.id for i in items.by_type(ItemType.IMAGE)] == ["A", "B"]
        assert "D" in items
        assert len(items) == 3
