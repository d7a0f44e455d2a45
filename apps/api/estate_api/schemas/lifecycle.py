"""Pydantic schemas for the account lifecycle trigger."""

from datetime import datetime

from pydantic import BaseModel


class LifecycleResultsRead(BaseModel):
    expired_trials: int
    archived_accounts: int
    card_expiry_warnings: int
    errors: list[str]


class LifecycleRunResponse(BaseModel):
    success: bool = True
    timestamp: datetime
    results: LifecycleResultsRead
