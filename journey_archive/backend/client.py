"""Typed client for the archive backend.

The client owns the envelope: it builds requests, hands them to a Transport,
and turns responses into records or exceptions. Transports only move
dictionaries, so the HTTP transport and the in-memory backend are
interchangeable.

Error mapping:
- the transport raises TransportError for anything below the envelope
- ``{"success": false}`` becomes ApplicationError with the error code
- a response that does not parse as an envelope becomes TransportError

Example:
    >>> client = ArchiveBackendClient(HttpTransport("https://archive.example.org/functions/v1"))
    >>> item = await client.upload_archive_item(
    ...     profile_id="p1", file_name="cup.jpg", file_type="image/jpeg",
    ...     file_size=2048, file_data=encoded, title="cup",
    ... )
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol

from pydantic import ValidationError

from journey_archive.backend.envelope import Action, ActionRequest, ActionResponse
from journey_archive.core.models import Contribution, ItemType, VisibilityLevel, utc_now
from journey_archive.errors import ApplicationError, TransportError

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Moves one envelope to a named backend function and back."""

    async def send(self, function: str, request: dict[str, Any]) -> dict[str, Any]: ...


@dataclass
class SubmissionReceipt:
    """Result of submit_profile_for_review."""

    submitted_at: datetime
    stewards_to_notify: list[str] = field(default_factory=list)


def _to_wire(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, list):
        return [_to_wire(v) for v in value]
    if isinstance(value, dict):
        return {k: _to_wire(v) for k, v in value.items()}
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    return value


class ArchiveBackendClient:
    """Every backend action the archive core consumes.

    Attributes:
        transport: Where envelopes are sent.
        profile_function: Function handling archive and review actions.
        notification_function: Function handling notification requests.
    """

    def __init__(
        self,
        transport: Transport,
        profile_function: str = "archive-profile",
        notification_function: str = "archive-notifications",
    ) -> None:
        self.transport = transport
        self.profile_function = profile_function
        self.notification_function = notification_function

    async def call(
        self,
        action: Action,
        payload: dict[str, Any],
        function: str | None = None,
    ) -> ActionResponse:
        """Send one action and return the successful response.

        Raises:
            TransportError: The call failed or the response was unreadable.
            ApplicationError: The backend answered ``success: false``.
        """
        request = ActionRequest(action=action, payload=_to_wire(payload))
        function = function or self.profile_function
        logger.debug(f"-> {function} {action.value}")

        raw = await self.transport.send(function, request.to_wire())

        try:
            response = ActionResponse.model_validate(raw)
        except ValidationError as e:
            raise TransportError(f"Malformed response to {action.value}", cause=e) from e

        if not response.success:
            logger.info(f"{action.value} rejected: {response.error}")
            raise ApplicationError(
                response.error or "server_error", response.detail, action.value
            )
        return response

    # -------------------------------------------------------------------------
    # Archive items
    # -------------------------------------------------------------------------

    async def upload_archive_item(
        self,
        profile_id: str,
        file_name: str,
        file_type: str,
        file_size: int,
        file_data: str,
        title: str,
        description: str | None = None,
        visibility: VisibilityLevel = VisibilityLevel.DRAFT,
        item_type: ItemType | None = None,
    ) -> Contribution:
        """Upload one file and return the persisted contribution."""
        response = await self.call(
            Action.UPLOAD_ARCHIVE_ITEM,
            {
                "profile_id": profile_id,
                "file_name": file_name,
                "file_type": file_type,
                "file_size": file_size,
                "file_data": file_data,
                "title": title,
                "description": description,
                "visibility": visibility,
                "item_type": item_type or ItemType.from_mime_type(file_type),
            },
        )
        item = response.get("item")
        if not isinstance(item, dict):
            raise TransportError("Upload response carried no item")
        try:
            return Contribution.from_payload(item)
        except ValidationError as e:
            raise TransportError("Upload response carried an invalid item", cause=e) from e

    async def update_archive_item(self, item_id: str, **fields: Any) -> None:
        await self.call(Action.UPDATE_ARCHIVE_ITEM, {"item_id": item_id, **fields})

    async def delete_archive_item(self, item_id: str) -> None:
        await self.call(Action.DELETE_ARCHIVE_ITEM, {"item_id": item_id})

    async def reorder_archive_items(self, profile_id: str, ordered_item_ids: list[str]) -> None:
        await self.call(
            Action.REORDER_ARCHIVE_ITEMS,
            {"profile_id": profile_id, "ordered_item_ids": list(ordered_item_ids)},
        )

    # -------------------------------------------------------------------------
    # Review
    # -------------------------------------------------------------------------

    async def submit_profile_for_review(self, profile_id: str) -> SubmissionReceipt:
        response = await self.call(Action.SUBMIT_PROFILE_FOR_REVIEW, {"profile_id": profile_id})
        submitted_at = response.get("submitted_at")
        stewards = response.get("stewards_to_notify") or []
        if isinstance(submitted_at, str):
            try:
                submitted_at = datetime.fromisoformat(submitted_at.replace("Z", "+00:00"))
            except ValueError:
                logger.warning(f"Unparseable submitted_at {submitted_at!r}, using local time")
                submitted_at = None
        return SubmissionReceipt(
            submitted_at=submitted_at or utc_now(),
            stewards_to_notify=[str(s) for s in stewards],
        )

    async def withdraw_submission(self, profile_id: str) -> None:
        await self.call(Action.WITHDRAW_SUBMISSION, {"profile_id": profile_id})

    async def notify_profile_submitted(
        self,
        profile_id: str,
        profile_name: str,
        stewards: list[str],
        country: str | None = None,
    ) -> None:
        """Send the fire-and-forget ``profile_submitted`` notification.

        Callers decide what to do with a failure; the review workflow only
        logs it.
        """
        await self.call(
            Action.PROFILE_SUBMITTED,
            {
                "profile_id": profile_id,
                "profile_name": profile_name,
                "country": country,
                "recipient_ids": list(stewards),
            },
            function=self.notification_function,
        )
