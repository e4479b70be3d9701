"""API request/response schemas for parent-call endpoints."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from tutorhub.services.parent_calls.quota import QuotaSnapshot


class ParentCallCreateRequest(BaseModel):
    """Call request submitted from the parent or coach portal."""

    enrollment_id: str = Field(min_length=1)
    initiated_by: Literal["parent", "coach"] = "parent"
    notes: str | None = Field(default=None, max_length=2000)


class ParentCallCompleteRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)


class ParentCallCancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=2000)


class ParentCallResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    call_id: str
    enrollment_id: str
    initiated_by: str
    status: str
    requested_at: datetime
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    notes: str | None = None


class ParentCallListResponse(BaseModel):
    """Calls for one enrollment, newest first, with the current quota."""

    calls: list[ParentCallResponse]
    quota: QuotaSnapshot
