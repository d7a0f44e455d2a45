"""Tests for email sequence enrollment, pause and stop."""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import select

from estate_api.db.enums import CrmActivityType, ProfileType, QueueStatus, SequenceAction
from estate_api.db.models import (
    CrmActivity,
    EmailSequence,
    EmailSequenceStep,
    ProfileEmailQueue,
)
from estate_api.services import activity_service, sequence_service


def _queue(db, profile_type, profile_id):
    column = (
        ProfileEmailQueue.buyer_profile_id
        if profile_type == ProfileType.BUYER
        else ProfileEmailQueue.seller_profile_id
    )
    return (
        db.execute(
            select(ProfileEmailQueue)
            .where(column == profile_id)
            .order_by(ProfileEmailQueue.step_number)
        )
        .scalars()
        .all()
    )


def _activities(db, profile_id):
    return (
        db.execute(
            select(CrmActivity).where(
                (CrmActivity.buyer_profile_id == profile_id)
                | (CrmActivity.seller_profile_id == profile_id)
            )
        )
        .scalars()
        .all()
    )


# =============================================================================
# Start
# =============================================================================

def test_start_queues_one_pending_row_per_step(db, buyer, make_sequence, settings, now):
    sequence = make_sequence(delays=(0, 24, 72))

    created = sequence_service.start_sequence(
        db, ProfileType.BUYER, buyer.id, sequence.id, now=now, config=settings
    )

    assert created == 3
    rows = _queue(db, ProfileType.BUYER, buyer.id)
    assert [r.status for r in rows] == [QueueStatus.PENDING.value] * 3
    assert [r.step_number for r in rows] == [1, 2, 3]
    assert [r.scheduled_for for r in rows] == [
        now,
        now + timedelta(hours=24),
        now + timedelta(hours=72),
    ]
    assert all(r.sequence_id == sequence.id for r in rows)
    assert all(r.seller_profile_id is None for r in rows)
    assert rows[1].template_key == "buyer_step_2"


def test_start_logs_manual_enrollment(db, buyer, make_sequence, settings, now):
    sequence = make_sequence(name="Viewing follow-up")

    sequence_service.start_sequence(
        db, ProfileType.BUYER, buyer.id, sequence.id, now=now, config=settings
    )

    activities = _activities(db, buyer.id)
    assert len(activities) == 1
    activity = activities[0]
    assert activity.activity_type == CrmActivityType.EMAIL_SENT.value
    assert activity.title == "Manually Started Email Sequence"
    assert activity.description == 'Manually enrolled in "Viewing follow-up" sequence'
    assert activity.metadata_ == {
        "sequence_id": str(sequence.id),
        "sequence_name": "Viewing follow-up",
        "manual_enrollment": True,
    }


def test_cumulative_mode_chains_delays(db, seller, make_sequence, settings, now):
    settings.SEQUENCE_DELAY_MODE = "cumulative"
    sequence = make_sequence(ProfileType.SELLER, delays=(0, 24, 72))

    sequence_service.start_sequence(
        db, ProfileType.SELLER, seller.id, sequence.id, now=now, config=settings
    )

    rows = _queue(db, ProfileType.SELLER, seller.id)
    assert [r.scheduled_for for r in rows] == [
        now,
        now + timedelta(hours=24),
        now + timedelta(hours=96),
    ]


@pytest.mark.parametrize("existing_status", [QueueStatus.PENDING, QueueStatus.SENT])
def test_start_rejected_while_enrolled(
    db, buyer, make_sequence, settings, now, existing_status
):
    first = make_sequence(delays=(0,))
    second = make_sequence(delays=(0, 12), name="Second")
    sequence_service.start_sequence(
        db, ProfileType.BUYER, buyer.id, first.id, now=now, config=settings
    )
    row = _queue(db, ProfileType.BUYER, buyer.id)[0]
    row.status = existing_status.value
    db.commit()

    with pytest.raises(ValueError, match="Profile already enrolled in a sequence"):
        sequence_service.start_sequence(
            db, ProfileType.BUYER, buyer.id, second.id, now=now, config=settings
        )

    assert len(_queue(db, ProfileType.BUYER, buyer.id)) == 1


def test_start_allowed_after_pause_or_cancel(db, buyer, make_sequence, settings, now):
    sequence = make_sequence(delays=(0, 24))
    sequence_service.start_sequence(
        db, ProfileType.BUYER, buyer.id, sequence.id, now=now, config=settings
    )
    sequence_service.pause_sequence(db, ProfileType.BUYER, buyer.id)

    created = sequence_service.start_sequence(
        db, ProfileType.BUYER, buyer.id, sequence.id, now=now, config=settings
    )

    assert created == 2
    statuses = sorted(r.status for r in _queue(db, ProfileType.BUYER, buyer.id))
    assert statuses == ["paused", "paused", "pending", "pending"]


def test_start_sequence_without_steps(db, buyer, make_sequence, settings, now):
    sequence = make_sequence(delays=())

    with pytest.raises(ValueError, match="No steps found for sequence"):
        sequence_service.start_sequence(
            db, ProfileType.BUYER, buyer.id, sequence.id, now=now, config=settings
        )
    assert _queue(db, ProfileType.BUYER, buyer.id) == []
    assert _activities(db, buyer.id) == []


def test_start_unknown_sequence(db, buyer, settings, now):
    with pytest.raises(ValueError, match="No steps found for sequence"):
        sequence_service.start_sequence(
            db, ProfileType.BUYER, buyer.id, uuid.uuid4(), now=now, config=settings
        )


def test_start_rejects_sequence_for_other_profile_type(db, buyer, make_sequence, settings, now):
    seller_sequence = make_sequence(ProfileType.SELLER)

    with pytest.raises(ValueError, match="Sequence does not belong"):
        sequence_service.start_sequence(
            db, ProfileType.BUYER, buyer.id, seller_sequence.id, now=now, config=settings
        )
    assert _queue(db, ProfileType.BUYER, buyer.id) == []


def test_start_rejects_sequence_from_other_organization(
    db, buyer, make_org, settings, now
):
    other_org = make_org(name="Rival Estates")
    foreign = EmailSequence(
        id=uuid.uuid4(),
        organization_id=other_org.id,
        name="Rival buyer welcome",
        profile_type=ProfileType.BUYER.value,
        trigger_stage="lead",
        is_active=True,
    )
    foreign.steps = [EmailSequenceStep(step_number=1, template_key="rival_1", delay_hours=0)]
    db.add(foreign)
    db.commit()

    with pytest.raises(ValueError, match="Sequence does not belong"):
        sequence_service.start_sequence(
            db, ProfileType.BUYER, buyer.id, foreign.id, now=now, config=settings
        )
    assert _queue(db, ProfileType.BUYER, buyer.id) == []
    assert _activities(db, buyer.id) == []


def test_start_unknown_profile(db, make_sequence, settings, now):
    sequence = make_sequence()

    with pytest.raises(ValueError, match="Profile not found"):
        sequence_service.start_sequence(
            db, ProfileType.BUYER, uuid.uuid4(), sequence.id, now=now, config=settings
        )


def test_start_survives_activity_failure(db, buyer, make_sequence, settings, now, monkeypatch):
    sequence = make_sequence()

    def broken(*args, **kwargs):
        raise RuntimeError("activity insert failed")

    monkeypatch.setattr(activity_service, "log_sequence_started", broken)

    assert (
        sequence_service.start_sequence(
            db, ProfileType.BUYER, buyer.id, sequence.id, now=now, config=settings
        )
        == 3
    )
    assert len(_queue(db, ProfileType.BUYER, buyer.id)) == 3
    assert _activities(db, buyer.id) == []


# =============================================================================
# Pause / stop
# =============================================================================

def _enroll_with_one_sent(db, buyer, make_sequence, settings, now):
    sequence = make_sequence(delays=(0, 24, 72))
    sequence_service.start_sequence(
        db, ProfileType.BUYER, buyer.id, sequence.id, now=now, config=settings
    )
    first = _queue(db, ProfileType.BUYER, buyer.id)[0]
    first.status = QueueStatus.SENT.value
    first.sent_at = now
    db.commit()


def test_pause_only_touches_pending(db, buyer, make_sequence, settings, now):
    _enroll_with_one_sent(db, buyer, make_sequence, settings, now)

    paused = sequence_service.pause_sequence(db, ProfileType.BUYER, buyer.id)

    assert paused == 2
    statuses = [r.status for r in _queue(db, ProfileType.BUYER, buyer.id)]
    assert statuses == ["sent", "paused", "paused"]
    activity = _activities(db, buyer.id)[-1]
    assert activity.activity_type == CrmActivityType.NOTE_ADDED.value
    assert activity.title == "Paused Email Sequence"


def test_stop_deletes_pending_and_paused_keeps_sent(db, buyer, make_sequence, settings, now):
    _enroll_with_one_sent(db, buyer, make_sequence, settings, now)
    rows = _queue(db, ProfileType.BUYER, buyer.id)
    rows[1].status = QueueStatus.PAUSED.value
    db.commit()

    removed = sequence_service.stop_sequence(db, ProfileType.BUYER, buyer.id)

    assert removed == 2
    remaining = _queue(db, ProfileType.BUYER, buyer.id)
    assert [r.status for r in remaining] == ["sent"]
    activity = _activities(db, buyer.id)[-1]
    assert activity.title == "Stopped Email Sequence"
    assert activity.description == "Email sequence stopped and removed from queue"


def test_stop_leaves_other_profiles_alone(db, buyer, make_profile, make_sequence, settings, now):
    other = make_profile(ProfileType.BUYER)
    sequence = make_sequence(delays=(0, 24))
    for profile in (buyer, other):
        sequence_service.start_sequence(
            db, ProfileType.BUYER, profile.id, sequence.id, now=now, config=settings
        )

    sequence_service.stop_sequence(db, ProfileType.BUYER, buyer.id)

    assert _queue(db, ProfileType.BUYER, buyer.id) == []
    assert len(_queue(db, ProfileType.BUYER, other.id)) == 2


def test_pause_without_enrollment_is_harmless(db, seller):
    assert sequence_service.pause_sequence(db, ProfileType.SELLER, seller.id) == 0


# =============================================================================
# Dispatch
# =============================================================================

def test_manage_start_requires_sequence_id(db, buyer, settings):
    with pytest.raises(ValueError, match="sequenceId required for start action"):
        sequence_service.manage_sequence(
            db,
            profile_type=ProfileType.BUYER,
            profile_id=buyer.id,
            action=SequenceAction.START,
            config=settings,
        )


def test_manage_dispatches_actions(db, buyer, make_sequence, settings, now):
    sequence = make_sequence(delays=(0, 24))

    started = sequence_service.manage_sequence(
        db,
        profile_type=ProfileType.BUYER,
        profile_id=buyer.id,
        action=SequenceAction.START,
        sequence_id=sequence.id,
        now=now,
        config=settings,
    )
    paused = sequence_service.manage_sequence(
        db, profile_type=ProfileType.BUYER, profile_id=buyer.id, action=SequenceAction.PAUSE
    )
    stopped = sequence_service.manage_sequence(
        db, profile_type=ProfileType.BUYER, profile_id=buyer.id, action=SequenceAction.STOP
    )

    assert (started, paused, stopped) == (2, 2, 2)
    assert _queue(db, ProfileType.BUYER, buyer.id) == []


def test_build_schedule_orders_by_step_number(now):
    class Step:
        def __init__(self, step_number, delay_hours):
            self.step_number = step_number
            self.delay_hours = delay_hours

    steps = [Step(2, 48), Step(1, 6)]

    independent = sequence_service.build_schedule(steps, now)
    cumulative = sequence_service.build_schedule(steps, now, "cumulative")

    assert [(s.step_number, t) for s, t in independent] == [
        (1, now + timedelta(hours=6)),
        (2, now + timedelta(hours=48)),
    ]
    assert [t for _, t in cumulative] == [
        now + timedelta(hours=6),
        now + timedelta(hours=54),
    ]
