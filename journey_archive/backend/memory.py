"""In-process archive backend.

InMemoryBackend speaks the same envelope as the HTTP functions and keeps
everything in dictionaries: profiles, contributions, a blob store and the
notifications it was asked to send. It is what the CLI runs against when no
backend URL is configured, and what the test suite drives.

Besides the actions, it offers steward-side helpers (``create_profile``,
``steward_decide``) and hooks for exercising failure paths:

- ``latency`` / ``latency_by_file`` delay calls so uploads interleave
- ``fail_next`` answers the next N calls of an action with an error code
- ``drop_next`` raises TransportError for the next N calls of an action
- ``failing_files`` makes uploads of the named files fail until removed

Example:
    >>> backend = InMemoryBackend()
    >>> profile_id = backend.create_profile(full_name="Ada Example")
    >>> client = ArchiveBackendClient(backend)
    >>> backend.fail_next("update_archive_item", error="permission_denied")
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import hashlib
import hmac
import logging
import secrets
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable

from pydantic import ValidationError

from journey_archive.backend.envelope import Action, ActionResponse
from journey_archive.core.models import (
    Contribution,
    ContributionStatus,
    ItemType,
    Profile,
    ReviewEvent,
    utc_now,
)
from journey_archive.core.ordering import apply_ordered_ids, resequence
from journey_archive.config import UploadConfig
from journey_archive.errors import TransportError
from journey_archive.upload.encoding import estimate_decoded_size

logger = logging.getLogger(__name__)

# Fields the owner may change through update_archive_item
UPDATABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "caption",
        "date_approximate",
        "source_attribution",
        "rights_status",
        "tags",
        "visibility",
        "linked_entities",
    }
)

# Steward decisions and the status each one leads to
DECISIONS = {
    "approve": ContributionStatus.APPROVED,
    "reject": ContributionStatus.REJECTED,
    "request_changes": ContributionStatus.NEEDS_CHANGES,
}


@dataclass
class RecordedCall:
    """One envelope the backend received."""

    function: str
    action: str
    payload: dict[str, Any]


@dataclass
class _Fault:
    error: str | None = None
    detail: str | None = None
    transport: bool = False


@dataclass
class SentNotification:
    kind: str
    payload: dict[str, Any]
    at: Any = field(default_factory=utc_now)


class InMemoryBackend:
    """Dictionary-backed implementation of every archive action.

    Attributes:
        profiles: Profiles by id.
        items: Contributions by id.
        blobs: Stored file bytes by storage path.
        stewards: Steward ids returned to notify on submission.
        calls: Every envelope received, in order.
        notifications: Notification requests received.
        latency: Seconds every call waits before answering.
        latency_by_file: Extra upload delay per file name.
        failing_files: File names whose uploads fail with ``server_error``.
        max_in_flight: Highest number of concurrent calls seen per action.
    """

    def __init__(
        self,
        stewards: list[str] | None = None,
        latency: float = 0.0,
        upload_config: UploadConfig | None = None,
        signing_key: bytes | None = None,
    ) -> None:
        self.profiles: dict[str, Profile] = {}
        self.items: dict[str, Contribution] = {}
        self.blobs: dict[str, bytes] = {}
        self.stewards = list(stewards if stewards is not None else ["steward-1"])
        self.calls: list[RecordedCall] = []
        self.notifications: list[SentNotification] = []
        self.latency = latency
        self.latency_by_file: dict[str, float] = {}
        self.failing_files: set[str] = set()
        self.max_in_flight: dict[str, int] = defaultdict(int)
        self._in_flight: dict[str, int] = defaultdict(int)
        self._faults: dict[str, list[_Fault]] = defaultdict(list)
        self._upload_config = upload_config or UploadConfig()
        self._signing_key = signing_key or secrets.token_bytes(32)
        self._handlers: dict[str, Callable[[dict[str, Any]], dict[str, Any]]] = {
            Action.UPLOAD_ARCHIVE_ITEM.value: self._upload_archive_item,
            Action.UPDATE_ARCHIVE_ITEM.value: self._update_archive_item,
            Action.DELETE_ARCHIVE_ITEM.value: self._delete_archive_item,
            Action.REORDER_ARCHIVE_ITEMS.value: self._reorder_archive_items,
            Action.SUBMIT_PROFILE_FOR_REVIEW.value: self._submit_profile_for_review,
            Action.WITHDRAW_SUBMISSION.value: self._withdraw_submission,
            Action.PROFILE_SUBMITTED.value: self._profile_submitted,
        }

    # =========================================================================
    # Transport
    # =========================================================================

    async def send(self, function: str, request: dict[str, Any]) -> dict[str, Any]:
        action = str(request.get("action", ""))
        payload = dict(request.get("payload") or {})
        self.calls.append(RecordedCall(function, action, payload))

        self._in_flight[action] += 1
        self.max_in_flight[action] = max(self.max_in_flight[action], self._in_flight[action])
        try:
            delay = self.latency + self.latency_by_file.get(payload.get("file_name", ""), 0.0)
            await asyncio.sleep(delay)
            return self._dispatch(action, payload)
        finally:
            self._in_flight[action] -= 1

    def _dispatch(self, action: str, payload: dict[str, Any]) -> dict[str, Any]:
        faults = self._faults.get(action)
        if faults:
            fault = faults.pop(0)
            if fault.transport:
                raise TransportError(f"Simulated connection failure for {action}")
            return ActionResponse.fail(fault.error or "server_error", fault.detail)

        handler = self._handlers.get(action)
        if handler is None:
            return ActionResponse.fail("validation_error", f"Unknown action: {action}")
        return handler(payload)

    # =========================================================================
    # Fault injection
    # =========================================================================

    def fail_next(
        self,
        action: str | Action,
        error: str = "server_error",
        detail: str | None = None,
        times: int = 1,
    ) -> None:
        """Answer the next ``times`` calls of an action with ``success: false``."""
        key = action.value if isinstance(action, Action) else action
        self._faults[key].extend(_Fault(error=error, detail=detail) for _ in range(times))

    def drop_next(self, action: str | Action, times: int = 1) -> None:
        """Raise TransportError for the next ``times`` calls of an action."""
        key = action.value if isinstance(action, Action) else action
        self._faults[key].extend(_Fault(transport=True) for _ in range(times))

    def calls_for(self, action: str | Action) -> list[RecordedCall]:
        key = action.value if isinstance(action, Action) else action
        return [call for call in self.calls if call.action == key]

    # =========================================================================
    # Steward-side helpers
    # =========================================================================

    def create_profile(self, profile_id: str | None = None, **fields: Any) -> str:
        """Register a draft profile and return its id."""
        profile = Profile(id=profile_id or str(uuid.uuid4()), **fields)
        self.profiles[profile.id] = profile
        return profile.id

    def add_item(self, item: Contribution) -> Contribution:
        """Seed a contribution directly (no upload)."""
        self.items[item.id] = item
        return item

    def steward_decide(self, item_id: str, decision: str, note: str | None = None) -> Contribution:
        """Apply a reviewer decision to a submitted contribution.

        Raises:
            KeyError: Unknown item or decision.
            ValueError: The item is not awaiting review.
        """
        item = self.items[item_id]
        target = DECISIONS[decision]
        if item.status != ContributionStatus.SUBMITTED_FOR_REVIEW:
            raise ValueError(f"Item {item_id} is not awaiting review")
        now = utc_now()
        update: dict[str, Any] = {
            "status": target,
            "updated_at": now,
            "review_history": [*item.review_history, ReviewEvent(action=decision, at=now, note=note)],
        }
        if target == ContributionStatus.APPROVED:
            update["approved_at"] = now
        else:
            update["rejected_at"] = now
            update["reviewer_note"] = note
        item = item.model_copy(update=update)
        self.items[item_id] = item
        return item

    def items_for(self, profile_id: str, item_type: ItemType | None = None) -> list[Contribution]:
        """Stored items of a profile in display order."""
        items = [
            i
            for i in self.items.values()
            if i.owner_profile_id == profile_id and (item_type is None or i.item_type == item_type)
        ]
        return sorted(items, key=lambda i: (i.item_type.value, i.display_order))

    def signed_url(self, storage_path: str) -> str:
        token = hmac.new(self._signing_key, storage_path.encode(), hashlib.sha256).hexdigest()[:32]
        return f"memory://archive/{storage_path}?token={token}"

    def verify_signed_url(self, url: str) -> bool:
        prefix = "memory://archive/"
        if not url.startswith(prefix) or "?token=" not in url:
            return False
        path, token = url[len(prefix):].split("?token=", 1)
        return hmac.compare_digest(self.signed_url(path), f"{prefix}{path}?token={token}")

    # =========================================================================
    # Action handlers
    # =========================================================================

    def _item_response(self, item: Contribution) -> dict[str, Any]:
        data = item.to_payload()
        if item.attachment is not None:
            data["signed_url"] = self.signed_url(item.attachment.storage_path)
        return data

    def _upload_archive_item(self, payload: dict[str, Any]) -> dict[str, Any]:
        profile_id = payload.get("profile_id")
        if profile_id not in self.profiles:
            return ActionResponse.fail("not_found", "Profile not found")
        file_name = str(payload.get("file_name") or "")
        file_type = str(payload.get("file_type") or "").lower()
        if file_name in self.failing_files:
            return ActionResponse.fail("server_error", f"Storage rejected {file_name}")
        if file_type not in self._upload_config.allowed_mime_types:
            return ActionResponse.fail("validation_error", "Unsupported file type")

        encoded = str(payload.get("file_data") or "")
        estimated = estimate_decoded_size(encoded, self._upload_config.size_estimate_multiplier)
        if estimated > self._upload_config.max_file_size_bytes:
            return ActionResponse.fail("validation_error", "File exceeds the size limit")
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError):
            return ActionResponse.fail("validation_error", "file_data is not valid base64")

        item_type = ItemType(payload.get("item_type") or ItemType.from_mime_type(file_type))
        siblings = self.items_for(profile_id, item_type)
        item_id = str(uuid.uuid4())
        storage_path = f"{profile_id}/{item_id}/{file_name}"
        try:
            item = Contribution.from_payload(
                {
                    "id": item_id,
                    "owner_profile_id": profile_id,
                    "item_type": item_type,
                    "title": payload.get("title") or file_name,
                    "description": payload.get("description"),
                    "visibility": payload.get("visibility") or "draft",
                    "display_order": len(siblings) + 1,
                    "storage_path": storage_path,
                    "mime_type": file_type,
                    "file_size": len(data),
                    "updated_at": utc_now(),
                }
            )
        except ValidationError as e:
            return ActionResponse.fail("validation_error", str(e.errors()[0]["msg"]))

        self.blobs[storage_path] = data
        self.items[item.id] = item
        logger.debug(f"Stored {file_name} as {item.id}")
        return ActionResponse.ok(item=self._item_response(item))

    def _update_archive_item(self, payload: dict[str, Any]) -> dict[str, Any]:
        item = self.items.get(payload.get("item_id", ""))
        if item is None:
            return ActionResponse.fail("not_found")
        fields = {k: v for k, v in payload.items() if k != "item_id"}
        if item.is_locked:
            return ActionResponse.fail("invalid_status")
        # Approved items only accept visibility changes
        if not item.is_owner_mutable and set(fields) - {"visibility"}:
            return ActionResponse.fail("invalid_status")

        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            return ActionResponse.fail("validation_error", f"Cannot update: {', '.join(sorted(unknown))}")
        try:
            updated = Contribution.model_validate(
                {**item.model_dump(), **fields, "updated_at": utc_now()}
            )
        except ValidationError as e:
            return ActionResponse.fail("validation_error", str(e.errors()[0]["msg"]))
        self.items[item.id] = updated
        return ActionResponse.ok()

    def _delete_archive_item(self, payload: dict[str, Any]) -> dict[str, Any]:
        item = self.items.get(payload.get("item_id", ""))
        if item is None:
            return ActionResponse.fail("not_found")
        if item.is_locked:
            return ActionResponse.fail("invalid_status")
        del self.items[item.id]
        if item.attachment is not None:
            self.blobs.pop(item.attachment.storage_path, None)
        for sibling in resequence(self.items_for(item.owner_profile_id, item.item_type)):
            self.items[sibling.id] = sibling
        return ActionResponse.ok()

    def _reorder_archive_items(self, payload: dict[str, Any]) -> dict[str, Any]:
        profile_id = payload.get("profile_id")
        if profile_id not in self.profiles:
            return ActionResponse.fail("not_found", "Profile not found")
        ordered_ids = list(payload.get("ordered_item_ids") or [])
        owned = {i.id for i in self.items_for(profile_id)}
        foreign = [item_id for item_id in ordered_ids if item_id not in owned]
        if foreign:
            return ActionResponse.fail("validation_error", "Unknown item in ordering")
        reordered = apply_ordered_ids(self.items_for(profile_id), ordered_ids)
        if any(
            item.is_locked and item.display_order != self.items[item.id].display_order
            for item in reordered
        ):
            return ActionResponse.fail("invalid_status", "Items under review cannot be reordered")
        for item in reordered:
            self.items[item.id] = item
        return ActionResponse.ok()

    def _submit_profile_for_review(self, payload: dict[str, Any]) -> dict[str, Any]:
        profile = self.profiles.get(payload.get("profile_id", ""))
        if profile is None:
            return ActionResponse.fail("not_found", "Profile not found")
        if not profile.is_owner_mutable:
            return ActionResponse.fail("invalid_status")

        now = utc_now()
        event = ReviewEvent(action="submit", at=now)
        self.profiles[profile.id] = profile.model_copy(
            update={
                "status": ContributionStatus.SUBMITTED_FOR_REVIEW,
                "submitted_at": now,
                "updated_at": now,
                "review_history": [*profile.review_history, event],
            }
        )
        for item in self.items_for(profile.id):
            if item.is_owner_mutable:
                self.items[item.id] = item.model_copy(
                    update={
                        "status": ContributionStatus.SUBMITTED_FOR_REVIEW,
                        "submitted_at": now,
                        "review_history": [*item.review_history, event],
                    }
                )
        return ActionResponse.ok(submitted_at=now.isoformat(), stewards_to_notify=list(self.stewards))

    def _withdraw_submission(self, payload: dict[str, Any]) -> dict[str, Any]:
        profile = self.profiles.get(payload.get("profile_id", ""))
        if profile is None:
            return ActionResponse.fail("not_found", "Profile not found")
        if profile.status != ContributionStatus.SUBMITTED_FOR_REVIEW:
            return ActionResponse.fail("invalid_status")

        now = utc_now()
        event = ReviewEvent(action="withdraw", at=now)
        revert = {"status": ContributionStatus.DRAFT, "submitted_at": None, "updated_at": now}
        self.profiles[profile.id] = profile.model_copy(
            update={**revert, "review_history": [*profile.review_history, event]}
        )
        for item in self.items_for(profile.id):
            if item.status == ContributionStatus.SUBMITTED_FOR_REVIEW:
                self.items[item.id] = item.model_copy(
                    update={**revert, "review_history": [*item.review_history, event]}
                )
        return ActionResponse.ok()

    def _profile_submitted(self, payload: dict[str, Any]) -> dict[str, Any]:
        self.notifications.append(SentNotification(kind="profile_submitted", payload=payload))
        return ActionResponse.ok()
