"""Enum definitions for application constants."""

from estate_api.db.enums.accounts import (
    AccountStatus,
    DunningEmailType,
    LifecycleTrigger,
    SubscriptionStatus,
)
from estate_api.db.enums.crm import (
    STAGES_BY_PROFILE_TYPE,
    BuyerStage,
    CancelReason,
    CrmActivityType,
    ProfileType,
    QueueStatus,
    SellerStage,
    SequenceAction,
)

__all__ = [
    "AccountStatus",
    "BuyerStage",
    "CancelReason",
    "CrmActivityType",
    "DunningEmailType",
    "LifecycleTrigger",
    "ProfileType",
    "QueueStatus",
    "STAGES_BY_PROFILE_TYPE",
    "SellerStage",
    "SequenceAction",
    "SubscriptionStatus",
]
