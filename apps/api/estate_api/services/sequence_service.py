"""Email sequence enrollment service - start, pause and stop per profile."""

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import delete, insert, select, update
from sqlalchemy.orm import Session

from estate_api.core.config import Settings, get_settings
from estate_api.db.enums import ProfileType, QueueStatus, SequenceAction
from estate_api.db.models import EmailSequence, EmailSequenceStep, ProfileEmailQueue
from estate_api.db.types import utcnow
from estate_api.services import activity_service, crm_profile_service
from estate_api.services.account_status_service import run_best_effort

logger = logging.getLogger(__name__)


ALREADY_ENROLLED_ERROR = "Profile already enrolled in a sequence"
NO_STEPS_ERROR = "No steps found for sequence"
SEQUENCE_ID_REQUIRED_ERROR = "sequenceId required for start action"
SEQUENCE_MISMATCH_ERROR = "Sequence does not belong to this profile's organization or type"


def build_schedule(
    steps: Sequence[EmailSequenceStep],
    enrolled_at: datetime,
    mode: str = "independent",
) -> list[tuple[EmailSequenceStep, datetime]]:
    """
    Pair each step with its send time.

    independent: every delay counts from the enrollment instant.
    cumulative: each delay counts from the previous step's send time.
    """
    ordered = sorted(steps, key=lambda s: s.step_number)
    schedule = []
    anchor = enrolled_at
    for step in ordered:
        if mode == "cumulative":
            anchor = anchor + timedelta(hours=step.delay_hours)
            schedule.append((step, anchor))
        else:
            schedule.append((step, enrolled_at + timedelta(hours=step.delay_hours)))
    return schedule


def _profile_filter(profile_type: ProfileType, profile_id: UUID):
    return crm_profile_service.queue_profile_column(profile_type) == profile_id


def is_enrolled(db: Session, profile_type: ProfileType, profile_id: UUID) -> bool:
    """True if the profile has any queue row still pending or already sent."""
    stmt = (
        select(ProfileEmailQueue.id)
        .where(
            _profile_filter(profile_type, profile_id),
            ProfileEmailQueue.status.in_(QueueStatus.enrolled()),
        )
        .limit(1)
    )
    return db.execute(stmt).scalar_one_or_none() is not None


def start_sequence(
    db: Session,
    profile_type: ProfileType,
    profile_id: UUID,
    sequence_id: UUID,
    *,
    now: datetime | None = None,
    config: Settings | None = None,
    actor_user_id: UUID | None = None,
) -> int:
    """
    Enroll a profile in a sequence by queueing one pending row per step.

    The profile row is locked for the check-then-insert so two concurrent
    starts for the same profile can't both pass the enrollment check.

    Returns:
        Number of queue rows created

    Raises:
        ValueError: profile missing, already enrolled, sequence from another
            organization or profile type, or sequence without steps
    """
    config = config or get_settings()
    now = now or utcnow()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    try:
        profile = crm_profile_service.get_profile(db, profile_type, profile_id, lock=True)
        if not profile:
            raise ValueError("Profile not found")

        if is_enrolled(db, profile_type, profile_id):
            raise ValueError(ALREADY_ENROLLED_ERROR)

        sequence = db.execute(
            select(EmailSequence).where(EmailSequence.id == sequence_id)
        ).scalar_one_or_none()
        if sequence is not None and (
            sequence.organization_id != profile.organization_id
            or sequence.profile_type != ProfileType(profile_type).value
        ):
            raise ValueError(SEQUENCE_MISMATCH_ERROR)
        steps = sequence.steps if sequence else []
        if not steps:
            raise ValueError(NO_STEPS_ERROR)

        column = crm_profile_service.queue_profile_column(profile_type).key
        rows = [
            {
                column: profile_id,
                "sequence_id": sequence_id,
                "step_number": step.step_number,
                "template_key": step.template_key,
                "scheduled_for": scheduled_for,
                "status": QueueStatus.PENDING.value,
                "created_at": now,
            }
            for step, scheduled_for in build_schedule(steps, now, config.SEQUENCE_DELAY_MODE)
        ]
        db.execute(insert(ProfileEmailQueue), rows)
        organization_id = profile.organization_id
        sequence_name = sequence.name
        db.commit()
    except Exception:
        # Releases the profile lock
        db.rollback()
        raise

    run_best_effort(
        db,
        "sequence start activity",
        activity_service.log_sequence_started,
        profile_type=profile_type,
        profile_id=profile_id,
        organization_id=organization_id,
        sequence_id=sequence_id,
        sequence_name=sequence_name,
        actor_user_id=actor_user_id,
    )
    logger.info(
        "Sequences: enrolled %s profile=%s in sequence=%s (%d emails)",
        profile_type.value,
        profile_id,
        sequence_id,
        len(rows),
    )
    return len(rows)


def pause_sequence(
    db: Session,
    profile_type: ProfileType,
    profile_id: UUID,
    *,
    actor_user_id: UUID | None = None,
) -> int:
    """Pause every pending email for the profile. Sent rows are left alone."""
    profile = crm_profile_service.get_profile(db, profile_type, profile_id)
    if not profile:
        raise ValueError("Profile not found")

    result = db.execute(
        update(ProfileEmailQueue)
        .where(
            _profile_filter(profile_type, profile_id),
            ProfileEmailQueue.status == QueueStatus.PENDING.value,
        )
        .values(status=QueueStatus.PAUSED.value)
        .execution_options(synchronize_session=False)
    )
    paused = result.rowcount
    organization_id = profile.organization_id
    db.commit()

    run_best_effort(
        db,
        "sequence pause activity",
        activity_service.log_sequence_paused,
        profile_type=profile_type,
        profile_id=profile_id,
        organization_id=organization_id,
        paused_count=paused,
        actor_user_id=actor_user_id,
    )
    logger.info("Sequences: paused %d emails for %s profile=%s", paused, profile_type.value, profile_id)
    return paused


def stop_sequence(
    db: Session,
    profile_type: ProfileType,
    profile_id: UUID,
    *,
    actor_user_id: UUID | None = None,
) -> int:
    """Remove every pending or paused email for the profile from the queue."""
    profile = crm_profile_service.get_profile(db, profile_type, profile_id)
    if not profile:
        raise ValueError("Profile not found")

    result = db.execute(
        delete(ProfileEmailQueue)
        .where(
            _profile_filter(profile_type, profile_id),
            ProfileEmailQueue.status.in_(QueueStatus.removable()),
        )
        .execution_options(synchronize_session=False)
    )
    removed = result.rowcount
    organization_id = profile.organization_id
    db.commit()

    run_best_effort(
        db,
        "sequence stop activity",
        activity_service.log_sequence_stopped,
        profile_type=profile_type,
        profile_id=profile_id,
        organization_id=organization_id,
        removed_count=removed,
        actor_user_id=actor_user_id,
    )
    logger.info("Sequences: stopped %d emails for %s profile=%s", removed, profile_type.value, profile_id)
    return removed


def manage_sequence(
    db: Session,
    *,
    profile_type: ProfileType,
    profile_id: UUID,
    action: SequenceAction,
    sequence_id: UUID | None = None,
    now: datetime | None = None,
    config: Settings | None = None,
    actor_user_id: UUID | None = None,
) -> int:
    """Dispatch a start/pause/stop action. Returns the number of queue rows affected."""
    if action == SequenceAction.START:
        if sequence_id is None:
            raise ValueError(SEQUENCE_ID_REQUIRED_ERROR)
        return start_sequence(
            db,
            profile_type,
            profile_id,
            sequence_id,
            now=now,
            config=config,
            actor_user_id=actor_user_id,
        )
    if action == SequenceAction.PAUSE:
        return pause_sequence(db, profile_type, profile_id, actor_user_id=actor_user_id)
    if action == SequenceAction.STOP:
        return stop_sequence(db, profile_type, profile_id, actor_user_id=actor_user_id)
    raise ValueError(f"Invalid action: {action}")
