"""Account status helpers shared by the lifecycle evaluator and billing events.

Every status change goes through try_transition, a conditional update scoped
by the status the caller expects the row to be in. A concurrent writer that
moved the row first wins and the caller sees 0 affected rows.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from estate_api.db.enums import AccountStatus, LifecycleTrigger
from estate_api.db.models import AccountLifecycleLog, Organization

logger = logging.getLogger(__name__)


TRIAL_EXPIRED_REASON = (
    "Your 14-day trial has ended. Subscribe to a plan to continue using all features."
)
ARCHIVED_REASON = "Account archived. Contact support to restore your account."
PAYMENT_FAILED_REASON = (
    "Payment failed. Please update your payment method within 14 days to restore access."
)
UNSUBSCRIBED_REASON = (
    "Subscription canceled. You have 30 days to reactivate before your account is archived."
)


def grace_period_end(now: datetime, days: int) -> datetime:
    """Return the instant a grace period started at `now` runs out."""
    return now + timedelta(days=days)


def try_transition(
    db: Session,
    org_id: UUID,
    from_status: AccountStatus | Iterable[AccountStatus],
    to_status: AccountStatus,
    patch: dict | None = None,
) -> int:
    """
    Move an organization to `to_status` only if it is still in `from_status`.

    The status predicate is evaluated by the database at write time, so this
    never overwrites a status another process set after our read.

    Args:
        db: Database session (caller commits)
        org_id: Organization to transition
        from_status: Expected current status, or several acceptable ones
        to_status: New status
        patch: Extra column values written in the same UPDATE

    Returns:
        Number of rows changed (0 or 1)
    """
    if isinstance(from_status, AccountStatus):
        expected = [from_status.value]
    else:
        expected = [s.value for s in from_status]
    if not expected:
        raise ValueError("from_status must name at least one status")

    values = dict(patch or {})
    values["account_status"] = to_status.value

    stmt = (
        update(Organization)
        .where(
            Organization.id == org_id,
            Organization.account_status.in_(expected),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    return result.rowcount


def record_transition(
    db: Session,
    *,
    org_id: UUID,
    previous_status: AccountStatus | str,
    new_status: AccountStatus,
    reason: str,
    triggered_by: LifecycleTrigger,
    metadata: dict | None = None,
    created_at: datetime | None = None,
) -> AccountLifecycleLog:
    """Append one lifecycle log row. Doesn't commit - caller controls transaction."""
    entry = AccountLifecycleLog(
        organization_id=org_id,
        previous_status=getattr(previous_status, "value", previous_status),
        new_status=new_status.value,
        reason=reason,
        triggered_by=triggered_by.value,
        metadata_=metadata,
    )
    if created_at is not None:
        entry.created_at = created_at
    db.add(entry)
    db.flush()
    return entry


def run_best_effort(db: Session, label: str, fn, *args, **kwargs) -> bool:
    """
    Run a side effect in its own commit.

    Failures are rolled back and logged, never raised, so they can't undo
    a status change that was already committed.
    """
    try:
        fn(db, *args, **kwargs)
        db.commit()
        return True
    except Exception:
        db.rollback()
        logger.warning("Best-effort %s failed", label, exc_info=True)
        return False
