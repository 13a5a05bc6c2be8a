"""Request/response envelope shared by every backend action.

Request:  ``{"action": str, "payload": {...}}``
Response: ``{"success": true, ...fields}`` or
          ``{"success": false, "error": str, "detail": str?}``
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Action(str, Enum):
    """Actions the archive core sends."""

    UPLOAD_ARCHIVE_ITEM = "upload_archive_item"
    UPDATE_ARCHIVE_ITEM = "update_archive_item"
    DELETE_ARCHIVE_ITEM = "delete_archive_item"
    REORDER_ARCHIVE_ITEMS = "reorder_archive_items"
    SUBMIT_PROFILE_FOR_REVIEW = "submit_profile_for_review"
    WITHDRAW_SUBMISSION = "withdraw_submission"
    PROFILE_SUBMITTED = "profile_submitted"


class ActionRequest(BaseModel):
    action: Action
    payload: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class ActionResponse(BaseModel):
    """Parsed response envelope. Extra fields are kept as-is."""

    model_config = ConfigDict(extra="allow")

    success: bool
    error: str | None = None
    detail: str | None = None

    @property
    def fields(self) -> dict[str, Any]:
        """Result fields beyond success/error/detail."""
        return dict(self.model_extra or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)

    @classmethod
    def ok(cls, **fields: Any) -> dict[str, Any]:
        """Build a success envelope (wire form)."""
        return {"success": True, **fields}

    @classmethod
    def fail(cls, error: str, detail: str | None = None) -> dict[str, Any]:
        """Build a failure envelope (wire form)."""
        body: dict[str, Any] = {"success": False, "error": error}
        if detail:
            body["detail"] = detail
        return body
