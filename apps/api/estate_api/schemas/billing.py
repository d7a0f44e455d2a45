"""Pydantic schemas for billing provider events."""

from pydantic import BaseModel


class BillingEventResponse(BaseModel):
    received: bool = True
    event_type: str
    changed: bool = False
