"""Account lifecycle and billing enums."""

from enum import Enum


class AccountStatus(str, Enum):
    """
    Organization account status.

    trial → trial_expired → archived
    payment_failed → archived
    unsubscribed → archived
    any → active (billing provider confirms payment)

    archived is terminal; leaving it requires a support action.
    """

    TRIAL = "trial"
    TRIAL_EXPIRED = "trial_expired"
    PAYMENT_FAILED = "payment_failed"
    UNSUBSCRIBED = "unsubscribed"
    ACTIVE = "active"
    ARCHIVED = "archived"

    @classmethod
    def grace_bearing(cls) -> list["AccountStatus"]:
        """Statuses that archive once grace_period_ends_at passes."""
        return [cls.TRIAL_EXPIRED, cls.PAYMENT_FAILED, cls.UNSUBSCRIBED]


class LifecycleTrigger(str, Enum):
    """What caused an account status transition."""

    CRON = "cron"
    WEBHOOK = "webhook"
    MANUAL = "manual"


class DunningEmailType(str, Enum):
    """Lifecycle notification emails queued for the external sender."""

    TRIAL_EXPIRED = "trial_expired"
    ACCOUNT_ARCHIVED = "account_archived"
    CARD_EXPIRING = "card_expiring"


class SubscriptionStatus(str, Enum):
    """Billing provider subscription status mirrored on billing_profiles."""

    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    TRIALING = "trialing"
