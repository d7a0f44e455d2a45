"""Account lifecycle evaluator.

Re-derives organization account status from time thresholds. Invoked by an
external cron (or manually); safe to run repeatedly and concurrently because
every status change is a conditional update on the current status.

Three independent passes:
- expire_trials: trial → trial_expired once trial_ends_at has passed
- archive_grace_expired: trial_expired / payment_failed / unsubscribed → archived
  once grace_period_ends_at has passed
- scan_expiring_cards: rate-limited card_expiring notifications
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import TypedDict

from sqlalchemy import select
from sqlalchemy.orm import Session

from estate_api.core.config import Settings, get_settings
from estate_api.db.enums import (
    AccountStatus,
    DunningEmailType,
    LifecycleTrigger,
    SubscriptionStatus,
)
from estate_api.db.models import BillingProfile, Organization
from estate_api.db.types import utcnow
from estate_api.services import account_status_service, dunning_service
from estate_api.services.account_status_service import run_best_effort

logger = logging.getLogger(__name__)


class LifecycleResults(TypedDict):
    """Summary returned to the cron caller. Non-empty errors is a soft failure."""

    expired_trials: int
    archived_accounts: int
    card_expiry_warnings: int
    errors: list[str]


def new_results() -> LifecycleResults:
    return {
        "expired_trials": 0,
        "archived_accounts": 0,
        "card_expiry_warnings": 0,
        "errors": [],
    }


def _normalize_now(now: datetime | None) -> datetime:
    if now is None:
        return utcnow()
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _select_expired_trials(db: Session, now: datetime):
    stmt = select(
        Organization.id,
        Organization.name,
        Organization.contact_email,
        Organization.trial_ends_at,
    ).where(
        Organization.account_status == AccountStatus.TRIAL.value,
        Organization.trial_ends_at < now,
    )
    return db.execute(stmt).all()


def _select_grace_expired(db: Session, status: AccountStatus, now: datetime):
    stmt = select(
        Organization.id,
        Organization.name,
        Organization.contact_email,
        Organization.grace_period_ends_at,
    ).where(
        Organization.account_status == status.value,
        Organization.grace_period_ends_at < now,
    )
    return db.execute(stmt).all()


def _select_expiring_cards(db: Session, now: datetime, horizon_end: datetime):
    stmt = (
        select(
            BillingProfile.organization_id,
            BillingProfile.card_expires_at,
            Organization.name,
            Organization.contact_email,
        )
        .join(Organization, Organization.id == BillingProfile.organization_id)
        .where(
            BillingProfile.subscription_status == SubscriptionStatus.ACTIVE.value,
            BillingProfile.card_expires_at >= now,
            BillingProfile.card_expires_at <= horizon_end,
        )
    )
    return db.execute(stmt).all()


def expire_trials(
    db: Session,
    now: datetime,
    results: LifecycleResults,
    *,
    config: Settings | None = None,
    triggered_by: LifecycleTrigger = LifecycleTrigger.CRON,
) -> LifecycleResults:
    """Move organizations whose trial has ended into trial_expired with a grace period."""
    config = config or get_settings()
    now = _normalize_now(now)

    try:
        candidates = _select_expired_trials(db, now)
    except Exception as e:
        db.rollback()
        logger.warning("Lifecycle: trial expiration query failed: %s", e)
        results["errors"].append(f"Trial expiration check failed: {e}")
        return results

    grace_days = config.TRIAL_GRACE_PERIOD_DAYS
    grace_ends = account_status_service.grace_period_end(now, grace_days)

    for org_id, org_name, contact_email, trial_ends_at in candidates:
        try:
            changed = account_status_service.try_transition(
                db,
                org_id,
                AccountStatus.TRIAL,
                AccountStatus.TRIAL_EXPIRED,
                patch={
                    "credit_spending_enabled": False,
                    "read_only_reason": account_status_service.TRIAL_EXPIRED_REASON,
                    "grace_period_ends_at": grace_ends,
                    "updated_at": now,
                },
            )
            db.commit()
        except Exception as e:
            db.rollback()
            logger.warning("Lifecycle: failed to expire trial for org=%s: %s", org_id, e)
            results["errors"].append(f"Failed to expire trial for org {org_id}: {e}")
            continue

        if not changed:
            # Status moved (usually to active via billing webhook) after our read.
            logger.info("Lifecycle: org=%s no longer in trial, skipped", org_id)
            continue

        results["expired_trials"] += 1

        run_best_effort(
            db,
            "lifecycle log",
            account_status_service.record_transition,
            org_id=org_id,
            previous_status=AccountStatus.TRIAL,
            new_status=AccountStatus.TRIAL_EXPIRED,
            reason="Trial period ended",
            triggered_by=triggered_by,
            metadata={
                "trial_ended_at": _iso(trial_ends_at),
                "grace_period_ends_at": grace_ends.isoformat(),
                "grace_period_days": grace_days,
            },
            created_at=now,
        )
        run_best_effort(
            db,
            "dunning email",
            dunning_service.enqueue,
            org_id=org_id,
            email_type=DunningEmailType.TRIAL_EXPIRED,
            recipient_email=contact_email,
            metadata={
                "business_name": org_name,
                "grace_period_ends_at": grace_ends.isoformat(),
            },
            created_at=now,
        )
        logger.info("Lifecycle: trial expired for org=%s", org_id)

    return results


def archive_grace_expired(
    db: Session,
    now: datetime,
    results: LifecycleResults,
    *,
    triggered_by: LifecycleTrigger = LifecycleTrigger.CRON,
) -> LifecycleResults:
    """Archive organizations whose grace period ended (strictly before `now`)."""
    now = _normalize_now(now)

    for status in AccountStatus.grace_bearing():
        try:
            candidates = _select_grace_expired(db, status, now)
        except Exception as e:
            db.rollback()
            logger.warning("Lifecycle: grace period query for %s failed: %s", status.value, e)
            results["errors"].append(f"Grace period check for {status.value} failed: {e}")
            continue

        for org_id, org_name, contact_email, grace_period_ends_at in candidates:
            try:
                changed = account_status_service.try_transition(
                    db,
                    org_id,
                    status,
                    AccountStatus.ARCHIVED,
                    patch={
                        "is_active": False,
                        "credit_spending_enabled": False,
                        "read_only_reason": account_status_service.ARCHIVED_REASON,
                        "archived_at": now,
                        "updated_at": now,
                    },
                )
                db.commit()
            except Exception as e:
                db.rollback()
                logger.warning("Lifecycle: failed to archive org=%s: %s", org_id, e)
                results["errors"].append(f"Failed to archive org {org_id}: {e}")
                continue

            if not changed:
                logger.info("Lifecycle: org=%s left %s before archive, skipped", org_id, status.value)
                continue

            results["archived_accounts"] += 1

            run_best_effort(
                db,
                "lifecycle log",
                account_status_service.record_transition,
                org_id=org_id,
                previous_status=status,
                new_status=AccountStatus.ARCHIVED,
                reason=f"Grace period ended after {status.value}",
                triggered_by=triggered_by,
                metadata={
                    "previous_status": status.value,
                    "grace_period_ended_at": _iso(grace_period_ends_at),
                    "archived_at": now.isoformat(),
                },
                created_at=now,
            )
            run_best_effort(
                db,
                "dunning email",
                dunning_service.enqueue,
                org_id=org_id,
                email_type=DunningEmailType.ACCOUNT_ARCHIVED,
                recipient_email=contact_email,
                metadata={
                    "business_name": org_name,
                    "previous_status": status.value,
                },
                created_at=now,
            )
            logger.info("Lifecycle: archived org=%s (was %s)", org_id, status.value)

    return results


def scan_expiring_cards(
    db: Session,
    now: datetime,
    results: LifecycleResults,
    *,
    horizon_days: int | None = None,
    config: Settings | None = None,
) -> LifecycleResults:
    """
    Queue card_expiring emails for active subscriptions whose card expires
    within the horizon. Skips organizations warned within the dedup window.
    """
    config = config or get_settings()
    now = _normalize_now(now)
    if horizon_days is None:
        horizon_days = config.CARD_EXPIRY_HORIZON_DAYS
    horizon_end = now + timedelta(days=horizon_days)

    try:
        profiles = _select_expiring_cards(db, now, horizon_end)
    except Exception as e:
        db.rollback()
        logger.warning("Lifecycle: card expiry query failed: %s", e)
        results["errors"].append(f"Card expiry check failed: {e}")
        return results

    for org_id, card_expires_at, org_name, contact_email in profiles:
        try:
            if dunning_service.has_recent(
                db,
                org_id=org_id,
                email_type=DunningEmailType.CARD_EXPIRING,
                now=now,
                window_days=config.CARD_EXPIRY_DEDUP_DAYS,
            ):
                continue
            dunning_service.enqueue(
                db,
                org_id=org_id,
                email_type=DunningEmailType.CARD_EXPIRING,
                recipient_email=contact_email,
                metadata={
                    "business_name": org_name,
                    "card_expires_at": _iso(card_expires_at),
                },
                created_at=now,
            )
            db.commit()
        except Exception as e:
            db.rollback()
            logger.warning("Lifecycle: card expiry warning failed for org=%s: %s", org_id, e)
            results["errors"].append(f"Card expiry warning failed for org {org_id}: {e}")
            continue

        results["card_expiry_warnings"] += 1
        logger.info("Lifecycle: card expiry warning for org=%s", org_id)

    return results


def run_account_lifecycle(
    db: Session,
    now: datetime | None = None,
    results: LifecycleResults | None = None,
    *,
    config: Settings | None = None,
    triggered_by: LifecycleTrigger = LifecycleTrigger.CRON,
) -> LifecycleResults:
    """
    Run all lifecycle passes in order.

    `results` is filled in place so a caller that catches an unexpected
    exception still holds the partial counts.
    """
    config = config or get_settings()
    now = _normalize_now(now)
    if results is None:
        results = new_results()

    logger.info("Lifecycle: running account lifecycle check at %s", now.isoformat())

    expire_trials(db, now, results, config=config, triggered_by=triggered_by)
    archive_grace_expired(db, now, results, triggered_by=triggered_by)
    scan_expiring_cards(db, now, results, config=config)

    logger.info(
        "Lifecycle: completed: %d trials expired, %d accounts archived, %d card warnings",
        results["expired_trials"],
        results["archived_accounts"],
        results["card_expiry_warnings"],
    )
    if results["errors"]:
        logger.error("Lifecycle: errors encountered: %s", results["errors"])

    return results
