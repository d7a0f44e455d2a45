"""Buyer/seller profile service - stage pipeline and lookups."""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from estate_api.db.enums import STAGES_BY_PROFILE_TYPE, ProfileType
from estate_api.db.models import (
    BuyerProfile,
    EmailSequence,
    ProfileEmailQueue,
    SellerProfile,
)
from estate_api.db.types import utcnow
from estate_api.services import activity_service
from estate_api.services.account_status_service import run_best_effort

logger = logging.getLogger(__name__)

CrmProfile = BuyerProfile | SellerProfile


def parse_profile_type(value: str | ProfileType) -> ProfileType:
    """Coerce a raw profile type, raising ValueError for anything else."""
    try:
        return ProfileType(value)
    except ValueError:
        raise ValueError(f"Invalid profile type: {value}") from None


def profile_model(profile_type: ProfileType) -> type[CrmProfile]:
    if profile_type == ProfileType.BUYER:
        return BuyerProfile
    return SellerProfile


def queue_profile_column(profile_type: ProfileType):
    """The ProfileEmailQueue column referencing this profile type."""
    if profile_type == ProfileType.BUYER:
        return ProfileEmailQueue.buyer_profile_id
    return ProfileEmailQueue.seller_profile_id


def get_profile(
    db: Session,
    profile_type: ProfileType,
    profile_id: UUID,
    *,
    lock: bool = False,
) -> CrmProfile | None:
    """
    Load a profile by id.

    With lock=True the row is selected FOR UPDATE so concurrent writers on the
    same profile serialize until the caller commits.
    """
    model = profile_model(profile_type)
    stmt = select(model).where(model.id == profile_id)
    if lock:
        stmt = stmt.with_for_update()
    return db.execute(stmt).scalar_one_or_none()


def validate_stage(profile_type: ProfileType, stage: str) -> str:
    """Return the stage if it belongs to the profile type's pipeline."""
    stages = STAGES_BY_PROFILE_TYPE[profile_type]
    valid = [s.value for s in stages]
    if stage not in valid:
        raise ValueError(
            f"Invalid {profile_type.value} stage: {stage}. Must be one of: {', '.join(valid)}"
        )
    return stage


def change_stage(
    db: Session,
    profile_type: ProfileType,
    profile_id: UUID,
    new_stage: str,
    *,
    actor_user_id: UUID | None = None,
) -> CrmProfile:
    """
    Move a profile to another pipeline stage.

    Any stage is reachable from any other. Enrollment is never triggered here;
    callers use find_trigger_sequences to offer matching sequences.
    """
    validate_stage(profile_type, new_stage)

    profile = get_profile(db, profile_type, profile_id)
    if not profile:
        raise ValueError("Profile not found")

    old_stage = profile.stage
    if old_stage == new_stage:
        return profile

    profile.stage = new_stage
    db.commit()
    db.refresh(profile)

    run_best_effort(
        db,
        "stage change activity",
        activity_service.log_stage_changed,
        profile_type=profile_type,
        profile_id=profile.id,
        organization_id=profile.organization_id,
        from_stage=old_stage,
        to_stage=new_stage,
        actor_user_id=actor_user_id,
    )
    logger.info(
        "CRM: %s profile=%s stage %s -> %s", profile_type.value, profile_id, old_stage, new_stage
    )
    return profile


def find_trigger_sequences(
    db: Session,
    org_id: UUID,
    profile_type: ProfileType,
    stage: str,
) -> list[EmailSequence]:
    """Active sequences of the organization that name this stage as their trigger."""
    stmt = (
        select(EmailSequence)
        .where(
            EmailSequence.organization_id == org_id,
            EmailSequence.profile_type == profile_type.value,
            EmailSequence.trigger_stage == stage,
            EmailSequence.is_active.is_(True),
        )
        .order_by(EmailSequence.created_at)
    )
    return list(db.execute(stmt).scalars().all())


def _latest_by_email(db: Session, model: type[CrmProfile], email: str) -> CrmProfile | None:
    stmt = (
        select(model)
        .where(model.email == email)
        .order_by(model.created_at.desc())
        .limit(1)
    )
    return db.execute(stmt).scalar_one_or_none()


def find_profile_by_email(
    db: Session,
    email: str,
    precedence: ProfileType | str = ProfileType.BUYER,
) -> tuple[ProfileType, CrmProfile] | None:
    """
    Resolve an email address to a single profile.

    The precedence type is checked first. Several profiles of one type with
    the same address resolve to the most recently created.
    """
    first = ProfileType(precedence)
    order = [first, ProfileType.SELLER if first == ProfileType.BUYER else ProfileType.BUYER]
    for profile_type in order:
        profile = _latest_by_email(db, profile_model(profile_type), email)
        if profile is not None:
            return profile_type, profile
    return None


def touch_last_contact(profile: CrmProfile, when: datetime | None = None) -> None:
    """Stamp last_contact_at. Doesn't commit - caller controls transaction."""
    profile.last_contact_at = when or utcnow()
