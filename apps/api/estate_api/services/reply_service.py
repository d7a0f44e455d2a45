"""Inbound reply handling - cancels automation when a customer writes back."""

import logging
from datetime import datetime
from typing import TypedDict

from sqlalchemy import select
from sqlalchemy.orm import Session

from estate_api.core.config import Settings, get_settings
from estate_api.db.enums import CancelReason, QueueStatus
from estate_api.db.models import ProfileEmailQueue
from estate_api.db.types import utcnow
from estate_api.services import activity_service, crm_profile_service
from estate_api.services.account_status_service import run_best_effort

logger = logging.getLogger(__name__)


class ReplyResult(TypedDict, total=False):
    success: bool
    message: str
    profile_id: str
    profile_type: str
    cancelled_count: int


def handle_inbound_reply(
    db: Session,
    reply_email: str,
    *,
    now: datetime | None = None,
    config: Settings | None = None,
) -> ReplyResult:
    """
    Cancel the queued sequence emails of the profile that owns reply_email.

    Only rows in REPLY_CANCEL_STATUS are cancelled; sent and already
    cancelled rows are never touched. Unknown addresses are not an error.
    """
    config = config or get_settings()
    now = now or utcnow()

    match = crm_profile_service.find_profile_by_email(
        db, reply_email, config.REPLY_PROFILE_PRECEDENCE
    )
    if match is None:
        logger.info("Replies: no profile for inbound reply")
        return {"success": True, "message": "No matching profile found"}
    profile_type, profile = match

    column = crm_profile_service.queue_profile_column(profile_type)
    rows = list(
        db.execute(
            select(ProfileEmailQueue)
            .where(
                column == profile.id,
                ProfileEmailQueue.status == config.REPLY_CANCEL_STATUS,
            )
            .with_for_update()
        )
        .scalars()
        .all()
    )
    if not rows:
        return {"success": True, "message": "No active automation to cancel"}

    cancelled = []
    for row in rows:
        row.status = QueueStatus.CANCELLED.value
        row.cancelled_reason = CancelReason.CUSTOMER_REPLIED.value
        cancelled.append(row.sequence_id)
    crm_profile_service.touch_last_contact(profile, now)
    profile_id = profile.id
    organization_id = profile.organization_id
    db.commit()

    for sequence_id in cancelled:
        run_best_effort(
            db,
            "customer replied activity",
            activity_service.log_customer_replied,
            profile_type=profile_type,
            profile_id=profile_id,
            organization_id=organization_id,
            sequence_id=sequence_id,
            reply_email=reply_email,
            cancelled_reason=CancelReason.CUSTOMER_REPLIED.value,
        )

    logger.info(
        "Replies: cancelled %d emails for %s profile=%s",
        len(cancelled),
        profile_type.value,
        profile_id,
    )
    return {
        "success": True,
        "message": "Automation cancelled",
        "profile_id": str(profile_id),
        "profile_type": profile_type.value,
        "cancelled_count": len(cancelled),
    }
