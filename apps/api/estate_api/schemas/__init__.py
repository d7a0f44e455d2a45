"""Pydantic schemas for API request/response models."""

from estate_api.schemas.billing import BillingEventResponse
from estate_api.schemas.crm import (
    SequenceManageRequest,
    SequenceManageResponse,
    StageChangeRequest,
    StageChangeResponse,
)
from estate_api.schemas.lifecycle import LifecycleResultsRead, LifecycleRunResponse
from estate_api.schemas.reply import InboundReplyResponse

__all__ = [
    "BillingEventResponse",
    "SequenceManageRequest",
    "SequenceManageResponse",
    "StageChangeRequest",
    "StageChangeResponse",
    "LifecycleResultsRead",
    "LifecycleRunResponse",
    "InboundReplyResponse",
]
