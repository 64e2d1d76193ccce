"""API request schemas for employee review endpoints.

Bodies are lenient on purpose: missing or malformed values are reported by
the service with the portal's own error codes rather than as schema errors.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ReviewRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ReasonRequest(ReviewRequest):
    """Body for reject, cancel and reason updates."""

    reason: str | None = None
    reason_code: str | None = None


class MentionIn(ReviewRequest):
    user_id: str
    name: str | None = None


class NoteRequest(ReviewRequest):
    text: str | None = None
    mentions: list[MentionIn] = []


class AssignRequest(ReviewRequest):
    """An empty `assigneeUserId` unassigns the payment."""

    assignee_user_id: str | None = None
    assignee_name: str | None = None


class EscalateRequest(ReviewRequest):
    escalated: bool = False
    notes: str | None = None


class BulkRequest(ReviewRequest):
    action: str | None = None
    ids: list[Any] = []
    reason: str | None = None
    reason_code: str | None = None


class BulkItemResult(BaseModel):
    id: str
    ok: bool
    error: str | None = None
