"""Activity logging service - buyer/seller CRM timeline."""

from uuid import UUID

from sqlalchemy.orm import Session

from estate_api.db.enums import CrmActivityType, ProfileType
from estate_api.db.models import CrmActivity


def log_activity(
    db: Session,
    profile_type: ProfileType,
    profile_id: UUID,
    organization_id: UUID,
    activity_type: CrmActivityType,
    title: str,
    description: str | None = None,
    metadata: dict | None = None,
    actor_user_id: UUID | None = None,
) -> CrmActivity:
    """
    Log a CRM activity on a buyer or seller profile.

    Args:
        db: Database session
        profile_type: Which profile table profile_id points into
        profile_id: The profile this activity is for
        organization_id: Organization context
        activity_type: Type of activity (from CrmActivityType enum)
        title: Timeline headline
        description: Optional longer text
        metadata: Type-specific details as JSON
        actor_user_id: User who performed the action (None for system)

    Returns:
        The created activity entry
    """
    activity = CrmActivity(
        organization_id=organization_id,
        activity_type=activity_type.value,
        title=title,
        description=description,
        metadata_=metadata,
        created_by=actor_user_id,
    )
    if profile_type == ProfileType.BUYER:
        activity.buyer_profile_id = profile_id
    else:
        activity.seller_profile_id = profile_id
    db.add(activity)
    db.flush()  # Don't commit - let caller control transaction
    return activity


def log_stage_changed(
    db: Session,
    profile_type: ProfileType,
    profile_id: UUID,
    organization_id: UUID,
    from_stage: str,
    to_stage: str,
    actor_user_id: UUID | None = None,
) -> CrmActivity:
    """Log a pipeline stage move."""
    return log_activity(
        db=db,
        profile_type=profile_type,
        profile_id=profile_id,
        organization_id=organization_id,
        activity_type=CrmActivityType.STAGE_CHANGE,
        title=f"Stage changed to {to_stage}",
        metadata={"from_stage": from_stage, "to_stage": to_stage},
        actor_user_id=actor_user_id,
    )


def log_sequence_started(
    db: Session,
    profile_type: ProfileType,
    profile_id: UUID,
    organization_id: UUID,
    sequence_id: UUID,
    sequence_name: str | None,
    actor_user_id: UUID | None = None,
) -> CrmActivity:
    """Log manual enrollment in an email sequence."""
    return log_activity(
        db=db,
        profile_type=profile_type,
        profile_id=profile_id,
        organization_id=organization_id,
        activity_type=CrmActivityType.EMAIL_SENT,
        title="Manually Started Email Sequence",
        description=f'Manually enrolled in "{sequence_name or "Unknown"}" sequence',
        metadata={
            "sequence_id": str(sequence_id),
            "sequence_name": sequence_name,
            "manual_enrollment": True,
        },
        actor_user_id=actor_user_id,
    )


def log_sequence_paused(
    db: Session,
    profile_type: ProfileType,
    profile_id: UUID,
    organization_id: UUID,
    paused_count: int,
    actor_user_id: UUID | None = None,
) -> CrmActivity:
    """Log a manual sequence pause."""
    return log_activity(
        db=db,
        profile_type=profile_type,
        profile_id=profile_id,
        organization_id=organization_id,
        activity_type=CrmActivityType.NOTE_ADDED,
        title="Paused Email Sequence",
        description="Email sequence paused manually",
        metadata={"manual_action": True, "paused_count": paused_count},
        actor_user_id=actor_user_id,
    )


def log_sequence_stopped(
    db: Session,
    profile_type: ProfileType,
    profile_id: UUID,
    organization_id: UUID,
    removed_count: int,
    actor_user_id: UUID | None = None,
) -> CrmActivity:
    """Log a manual sequence stop (queue rows were deleted)."""
    return log_activity(
        db=db,
        profile_type=profile_type,
        profile_id=profile_id,
        organization_id=organization_id,
        activity_type=CrmActivityType.NOTE_ADDED,
        title="Stopped Email Sequence",
        description="Email sequence stopped and removed from queue",
        metadata={"manual_action": True, "removed_count": removed_count},
        actor_user_id=actor_user_id,
    )


def log_customer_replied(
    db: Session,
    profile_type: ProfileType,
    profile_id: UUID,
    organization_id: UUID,
    sequence_id: UUID,
    reply_email: str,
    cancelled_reason: str,
) -> CrmActivity:
    """Log that an inbound reply cancelled a scheduled sequence email."""
    return log_activity(
        db=db,
        profile_type=profile_type,
        profile_id=profile_id,
        organization_id=organization_id,
        activity_type=CrmActivityType.CUSTOMER_REPLIED,
        title="Customer replied - automation cancelled",
        description=(
            "Customer responded to automated email. "
            "Automation sequence has been cancelled."
        ),
        metadata={
            "sequence_id": str(sequence_id),
            "reply_email": reply_email,
            "cancelled_reason": cancelled_reason,
        },
    )
