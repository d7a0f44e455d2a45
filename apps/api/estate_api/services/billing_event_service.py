"""Account transitions driven by billing provider events.

Callers pass events that were already verified and resolved to an
organization. Every transition here uses the same conditional update as the
lifecycle evaluator, so a webhook and the cron can't overwrite each other.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from estate_api.core.config import Settings, get_settings
from estate_api.db.enums import AccountStatus, LifecycleTrigger, SubscriptionStatus
from estate_api.db.models import BillingProfile, Organization
from estate_api.db.types import utcnow
from estate_api.services import account_status_service
from estate_api.services.account_status_service import run_best_effort

logger = logging.getLogger(__name__)


ACTIVATABLE_STATUSES = [
    AccountStatus.TRIAL,
    AccountStatus.TRIAL_EXPIRED,
    AccountStatus.PAYMENT_FAILED,
    AccountStatus.UNSUBSCRIBED,
]


def _current_status(db: Session, org_id: UUID) -> str | None:
    return db.execute(
        select(Organization.account_status).where(Organization.id == org_id)
    ).scalar_one_or_none()


def _get_billing_profile(db: Session, org_id: UUID) -> BillingProfile | None:
    return db.execute(
        select(BillingProfile).where(BillingProfile.organization_id == org_id)
    ).scalar_one_or_none()


def activate(
    db: Session,
    org_id: UUID,
    reason: str,
    *,
    now: datetime | None = None,
) -> bool:
    """
    Payment succeeded: move a non-archived organization to active.

    Archived organizations need a support action and are left alone.
    Returns True if the organization changed status.
    """
    now = now or utcnow()
    previous = _current_status(db, org_id)
    if previous is None:
        raise ValueError(f"Organization {org_id} not found")
    if previous == AccountStatus.ACTIVE.value:
        return False

    changed = account_status_service.try_transition(
        db,
        org_id,
        ACTIVATABLE_STATUSES,
        AccountStatus.ACTIVE,
        patch={
            "credit_spending_enabled": True,
            "read_only_reason": None,
            "grace_period_ends_at": None,
            "updated_at": now,
        },
    )
    db.commit()
    if not changed:
        logger.info("Billing: org=%s not activatable from %s", org_id, previous)
        return False

    run_best_effort(
        db,
        "lifecycle log",
        account_status_service.record_transition,
        org_id=org_id,
        previous_status=previous,
        new_status=AccountStatus.ACTIVE,
        reason=reason,
        triggered_by=LifecycleTrigger.WEBHOOK,
        metadata={"transitioned_at": now.isoformat()},
        created_at=now,
    )
    logger.info("Billing: org=%s transitioned to active from %s", org_id, previous)
    return True


def mark_payment_failed(
    db: Session,
    org_id: UUID,
    *,
    invoice_id: str | None = None,
    now: datetime | None = None,
    config: Settings | None = None,
) -> bool:
    """
    Record a failed payment and start the payment_failed grace period.

    Only an active organization transitions; repeat failures just bump the
    counter on the billing profile.
    """
    config = config or get_settings()
    now = now or utcnow()

    profile = _get_billing_profile(db, org_id)
    if profile is None:
        raise ValueError(f"Billing profile for organization {org_id} not found")
    profile.payment_failure_count = (profile.payment_failure_count or 0) + 1
    profile.last_payment_failed_at = now
    failure_count = profile.payment_failure_count

    grace_days = config.PAYMENT_FAILED_GRACE_DAYS
    grace_ends = account_status_service.grace_period_end(now, grace_days)
    changed = account_status_service.try_transition(
        db,
        org_id,
        AccountStatus.ACTIVE,
        AccountStatus.PAYMENT_FAILED,
        patch={
            "credit_spending_enabled": False,
            "read_only_reason": account_status_service.PAYMENT_FAILED_REASON,
            "grace_period_ends_at": grace_ends,
            "updated_at": now,
        },
    )
    db.commit()

    if not changed:
        logger.info(
            "Billing: payment failed for org=%s (attempt #%d), status unchanged",
            org_id,
            failure_count,
        )
        return False

    run_best_effort(
        db,
        "lifecycle log",
        account_status_service.record_transition,
        org_id=org_id,
        previous_status=AccountStatus.ACTIVE,
        new_status=AccountStatus.PAYMENT_FAILED,
        reason=f"Payment failed (attempt #{failure_count})",
        triggered_by=LifecycleTrigger.WEBHOOK,
        metadata={
            "invoice_id": invoice_id,
            "failure_count": failure_count,
            "grace_period_ends_at": grace_ends.isoformat(),
            "grace_period_days": grace_days,
        },
        created_at=now,
    )
    logger.info("Billing: payment failed for org=%s, grace period started", org_id)
    return True


def recover_payment(
    db: Session,
    org_id: UUID,
    *,
    now: datetime | None = None,
) -> bool:
    """Payment succeeded after a failure: reset the counter and reactivate."""
    now = now or utcnow()
    if _current_status(db, org_id) != AccountStatus.PAYMENT_FAILED.value:
        return False

    profile = _get_billing_profile(db, org_id)
    if profile is not None:
        profile.payment_failure_count = 0
        profile.last_payment_failed_at = None
        db.commit()

    return activate(db, org_id, "Payment recovered successfully", now=now)


def mark_unsubscribed(
    db: Session,
    org_id: UUID,
    *,
    subscription_id: str | None = None,
    now: datetime | None = None,
    config: Settings | None = None,
) -> bool:
    """Subscription canceled: active → unsubscribed with its own grace period."""
    config = config or get_settings()
    now = now or utcnow()

    profile = _get_billing_profile(db, org_id)
    if profile is not None:
        profile.subscription_status = SubscriptionStatus.CANCELED.value
        profile.unsubscribed_at = now

    grace_days = config.UNSUBSCRIBED_GRACE_DAYS
    grace_ends = account_status_service.grace_period_end(now, grace_days)
    changed = account_status_service.try_transition(
        db,
        org_id,
        AccountStatus.ACTIVE,
        AccountStatus.UNSUBSCRIBED,
        patch={
            "credit_spending_enabled": False,
            "read_only_reason": account_status_service.UNSUBSCRIBED_REASON,
            "grace_period_ends_at": grace_ends,
            "updated_at": now,
        },
    )
    db.commit()

    if not changed:
        logger.info("Billing: subscription canceled for org=%s, status unchanged", org_id)
        return False

    run_best_effort(
        db,
        "lifecycle log",
        account_status_service.record_transition,
        org_id=org_id,
        previous_status=AccountStatus.ACTIVE,
        new_status=AccountStatus.UNSUBSCRIBED,
        reason="Subscription canceled by user or billing provider",
        triggered_by=LifecycleTrigger.WEBHOOK,
        metadata={
            "subscription_id": subscription_id,
            "grace_period_ends_at": grace_ends.isoformat(),
            "grace_period_days": grace_days,
        },
        created_at=now,
    )
    logger.info("Billing: subscription canceled for org=%s, grace period started", org_id)
    return True
