"""Dunning email queue - lifecycle notification intents for the external sender."""

from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from estate_api.db.enums import DunningEmailType
from estate_api.db.models import DunningEmail


def enqueue(
    db: Session,
    *,
    org_id: UUID,
    email_type: DunningEmailType,
    recipient_email: str | None,
    metadata: dict | None = None,
    created_at: datetime | None = None,
) -> DunningEmail:
    """Queue one dunning email. Doesn't commit - caller controls transaction."""
    email = DunningEmail(
        organization_id=org_id,
        email_type=email_type.value,
        recipient_email=recipient_email,
        email_number=1,
        metadata_=metadata,
    )
    if created_at is not None:
        email.created_at = created_at
    db.add(email)
    db.flush()
    return email


def has_recent(
    db: Session,
    *,
    org_id: UUID,
    email_type: DunningEmailType,
    now: datetime,
    window_days: int,
) -> bool:
    """True if an email of this type was queued for the org within the window."""
    since = now - timedelta(days=window_days)
    stmt = (
        select(DunningEmail.id)
        .where(
            DunningEmail.organization_id == org_id,
            DunningEmail.email_type == email_type.value,
            DunningEmail.created_at >= since,
        )
        .limit(1)
    )
    return db.execute(stmt).scalar_one_or_none() is not None
