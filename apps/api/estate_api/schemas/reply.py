"""Pydantic schemas for inbound reply handling."""

from uuid import UUID

from pydantic import BaseModel


class InboundReplyResponse(BaseModel):
    success: bool = True
    message: str
    profile_id: UUID | None = None
    profile_type: str | None = None
    cancelled_count: int | None = None
