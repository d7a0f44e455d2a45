"""CRM pipeline and email sequence enums."""

from enum import Enum


class ProfileType(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"


class SellerStage(str, Enum):
    """
    Seller pipeline stages.

    lead → valuation_scheduled → valuation_complete → listed → under_offer → sold
    lost is reachable from any stage. Transitions are not constrained.
    """

    LEAD = "lead"
    VALUATION_SCHEDULED = "valuation_scheduled"
    VALUATION_COMPLETE = "valuation_complete"
    LISTED = "listed"
    UNDER_OFFER = "under_offer"
    SOLD = "sold"
    LOST = "lost"


class BuyerStage(str, Enum):
    """
    Buyer pipeline stages.

    lead → qualified → viewing_scheduled → viewed → offer_made → sale_agreed → purchased
    lost is reachable from any stage. Transitions are not constrained.
    """

    LEAD = "lead"
    QUALIFIED = "qualified"
    VIEWING_SCHEDULED = "viewing_scheduled"
    VIEWED = "viewed"
    OFFER_MADE = "offer_made"
    SALE_AGREED = "sale_agreed"
    PURCHASED = "purchased"
    LOST = "lost"


STAGES_BY_PROFILE_TYPE: dict[ProfileType, type[Enum]] = {
    ProfileType.BUYER: BuyerStage,
    ProfileType.SELLER: SellerStage,
}


class QueueStatus(str, Enum):
    """Status of a scheduled sequence email for one profile."""

    PENDING = "pending"
    SENT = "sent"
    PAUSED = "paused"
    CANCELLED = "cancelled"

    @classmethod
    def enrolled(cls) -> list[str]:
        """Statuses that count as an existing enrollment."""
        return [cls.PENDING.value, cls.SENT.value]

    @classmethod
    def removable(cls) -> list[str]:
        """Statuses deleted when a sequence is stopped."""
        return [cls.PENDING.value, cls.PAUSED.value]


class CancelReason(str, Enum):
    CUSTOMER_REPLIED = "customer_replied"


class CrmActivityType(str, Enum):
    """Timeline events on a buyer/seller profile."""

    NOTE = "note"
    NOTE_ADDED = "note_added"
    EMAIL = "email"
    EMAIL_SENT = "email_sent"
    CALL = "call"
    MEETING = "meeting"
    STAGE_CHANGE = "stage_change"
    CUSTOMER_REPLIED = "customer_replied"
    LISTING_SENT = "listing_sent"
    VIEWING_SCHEDULED = "viewing_scheduled"
    OFFER_RECEIVED = "offer_received"


class SequenceAction(str, Enum):
    START = "start"
    PAUSE = "pause"
    STOP = "stop"
