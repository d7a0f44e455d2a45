"""Tests for billing-event driven account transitions."""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import select

from estate_api.db.enums import AccountStatus, LifecycleTrigger, SubscriptionStatus
from estate_api.db.models import AccountLifecycleLog
from estate_api.services import account_status_service, billing_event_service


def _logs(db, org_id):
    return (
        db.execute(
            select(AccountLifecycleLog).where(AccountLifecycleLog.organization_id == org_id)
        )
        .scalars()
        .all()
    )


@pytest.mark.parametrize(
    "status",
    [
        AccountStatus.TRIAL,
        AccountStatus.TRIAL_EXPIRED,
        AccountStatus.PAYMENT_FAILED,
        AccountStatus.UNSUBSCRIBED,
    ],
)
def test_activate_restores_access(db, make_org, now, status):
    org = make_org(status, grace_period_ends_at=now + timedelta(days=3))

    changed = billing_event_service.activate(db, org.id, "Checkout completed", now=now)

    assert changed is True
    db.refresh(org)
    assert org.account_status == AccountStatus.ACTIVE.value
    assert org.credit_spending_enabled is True
    assert org.read_only_reason is None
    assert org.grace_period_ends_at is None
    logs = _logs(db, org.id)
    assert len(logs) == 1
    assert logs[0].previous_status == status.value
    assert logs[0].triggered_by == LifecycleTrigger.WEBHOOK.value


def test_activate_leaves_archived_alone(db, make_org, now):
    org = make_org(AccountStatus.ARCHIVED)

    assert billing_event_service.activate(db, org.id, "Checkout completed", now=now) is False

    db.refresh(org)
    assert org.account_status == AccountStatus.ARCHIVED.value
    assert _logs(db, org.id) == []


def test_activate_already_active_is_a_no_op(db, make_org, now):
    org = make_org(AccountStatus.ACTIVE)

    assert billing_event_service.activate(db, org.id, "Invoice paid", now=now) is False
    assert _logs(db, org.id) == []


def test_activate_unknown_org_raises(db, now):
    with pytest.raises(ValueError, match="not found"):
        billing_event_service.activate(db, uuid.uuid4(), "Invoice paid", now=now)


def test_payment_failed_starts_grace_period(db, make_org, make_billing_profile, settings, now):
    org = make_org(AccountStatus.ACTIVE)
    profile = make_billing_profile(org)

    changed = billing_event_service.mark_payment_failed(
        db, org.id, invoice_id="in_123", now=now, config=settings
    )

    assert changed is True
    db.refresh(org)
    db.refresh(profile)
    assert org.account_status == AccountStatus.PAYMENT_FAILED.value
    assert org.credit_spending_enabled is False
    assert org.grace_period_ends_at == now + timedelta(days=14)
    assert org.read_only_reason == account_status_service.PAYMENT_FAILED_REASON
    assert profile.payment_failure_count == 1
    log = _logs(db, org.id)[0]
    assert log.reason == "Payment failed (attempt #1)"
    assert log.metadata_["invoice_id"] == "in_123"


def test_repeat_payment_failure_only_counts(db, make_org, make_billing_profile, settings, now):
    org = make_org(AccountStatus.ACTIVE)
    profile = make_billing_profile(org)
    billing_event_service.mark_payment_failed(db, org.id, now=now, config=settings)

    changed = billing_event_service.mark_payment_failed(
        db, org.id, now=now + timedelta(days=3), config=settings
    )

    assert changed is False
    db.refresh(org)
    db.refresh(profile)
    assert profile.payment_failure_count == 2
    assert org.grace_period_ends_at == now + timedelta(days=14)
    assert len(_logs(db, org.id)) == 1


def test_payment_failed_without_billing_profile_raises(db, make_org, settings, now):
    org = make_org(AccountStatus.ACTIVE)

    with pytest.raises(ValueError, match="Billing profile"):
        billing_event_service.mark_payment_failed(db, org.id, now=now, config=settings)


def test_recover_payment_resets_counter_and_activates(
    db, make_org, make_billing_profile, settings, now
):
    org = make_org(AccountStatus.ACTIVE)
    profile = make_billing_profile(org)
    billing_event_service.mark_payment_failed(db, org.id, now=now, config=settings)

    assert billing_event_service.recover_payment(db, org.id, now=now + timedelta(days=1)) is True

    db.refresh(org)
    db.refresh(profile)
    assert org.account_status == AccountStatus.ACTIVE.value
    assert profile.payment_failure_count == 0
    assert profile.last_payment_failed_at is None
    assert _logs(db, org.id)[-1].reason == "Payment recovered successfully"


def test_recover_payment_ignores_other_statuses(db, make_org, now):
    org = make_org(AccountStatus.TRIAL)

    assert billing_event_service.recover_payment(db, org.id, now=now) is False
    db.refresh(org)
    assert org.account_status == AccountStatus.TRIAL.value


def test_unsubscribe_starts_thirty_day_grace(db, make_org, make_billing_profile, settings, now):
    org = make_org(AccountStatus.ACTIVE)
    profile = make_billing_profile(org)

    changed = billing_event_service.mark_unsubscribed(
        db, org.id, subscription_id="sub_9", now=now, config=settings
    )

    assert changed is True
    db.refresh(org)
    db.refresh(profile)
    assert org.account_status == AccountStatus.UNSUBSCRIBED.value
    assert org.grace_period_ends_at == now + timedelta(days=30)
    assert org.read_only_reason == account_status_service.UNSUBSCRIBED_REASON
    assert profile.subscription_status == SubscriptionStatus.CANCELED.value
    assert profile.unsubscribed_at == now


def test_unsubscribe_from_trial_does_not_transition(db, make_org, settings, now):
    org = make_org(AccountStatus.TRIAL)

    assert billing_event_service.mark_unsubscribed(db, org.id, now=now, config=settings) is False
    db.refresh(org)
    assert org.account_status == AccountStatus.TRIAL.value


def test_try_transition_accepts_several_expected_statuses(db, make_org):
    org = make_org(AccountStatus.UNSUBSCRIBED)

    changed = account_status_service.try_transition(
        db,
        org.id,
        [AccountStatus.TRIAL, AccountStatus.UNSUBSCRIBED],
        AccountStatus.ACTIVE,
    )
    db.commit()

    assert changed == 1
    db.refresh(org)
    assert org.account_status == AccountStatus.ACTIVE.value


def test_try_transition_requires_an_expected_status(db, make_org):
    org = make_org(AccountStatus.TRIAL)

    with pytest.raises(ValueError):
        account_status_service.try_transition(db, org.id, [], AccountStatus.ACTIVE)
