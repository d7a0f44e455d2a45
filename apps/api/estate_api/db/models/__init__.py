"""SQLAlchemy ORM models."""

from estate_api.db.models.accounts import (
    AccountLifecycleLog,
    BillingProfile,
    DunningEmail,
    Organization,
)
from estate_api.db.models.crm import BuyerProfile, CrmActivity, SellerProfile
from estate_api.db.models.sequences import (
    EmailSequence,
    EmailSequenceStep,
    ProfileEmailQueue,
)

__all__ = [
    "AccountLifecycleLog",
    "BillingProfile",
    "BuyerProfile",
    "CrmActivity",
    "DunningEmail",
    "EmailSequence",
    "EmailSequenceStep",
    "Organization",
    "ProfileEmailQueue",
    "SellerProfile",
]
