"""SQLAlchemy ORM models for tenants, billing and the account lifecycle."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from estate_api.db.base import Base
from estate_api.db.enums import AccountStatus
from estate_api.db.types import JSONType, utcnow


class Organization(Base):
    """
    A tenant (estate agency) in the multi-tenant system.

    account_status is only ever changed through conditional updates
    scoped by the current status. Rows are never deleted, only archived.
    """

    __tablename__ = "organizations"
    __table_args__ = (
        Index("idx_organizations_status_trial", "account_status", "trial_ends_at"),
        Index("idx_organizations_status_grace", "account_status", "grace_period_ends_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    account_status: Mapped[str] = mapped_column(
        String(30),
        default=AccountStatus.TRIAL.value,
        server_default=text("'trial'"),
        nullable=False,
    )
    trial_ends_at: Mapped[datetime | None] = mapped_column(nullable=True)
    grace_period_ends_at: Mapped[datetime | None] = mapped_column(nullable=True)
    archived_at: Mapped[datetime | None] = mapped_column(nullable=True)
    read_only_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Feature gates
    credit_spending_enabled: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    is_comped: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )  # billing-exempt
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    billing_profile: Mapped["BillingProfile | None"] = relationship(
        back_populates="organization", uselist=False
    )


class BillingProfile(Base):
    """
    Billing provider state for an organization (1:1).

    Written by billing webhooks; the lifecycle evaluator only reads it.
    """

    __tablename__ = "billing_profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    stripe_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    stripe_subscription_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    subscription_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    subscription_plan: Mapped[str | None] = mapped_column(String(50), nullable=True)
    card_expires_at: Mapped[datetime | None] = mapped_column(nullable=True)

    payment_failure_count: Mapped[int] = mapped_column(
        Integer, default=0, server_default=text("0"), nullable=False
    )
    last_payment_failed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    unsubscribed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    organization: Mapped["Organization"] = relationship(back_populates="billing_profile")


class AccountLifecycleLog(Base):
    """
    Append-only audit trail of account status transitions.

    One row per transition; never updated after insert.
    """

    __tablename__ = "account_lifecycle_log"
    __table_args__ = (
        Index("idx_lifecycle_log_org", "organization_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    previous_status: Mapped[str] = mapped_column(String(30), nullable=False)
    new_status: Mapped[str] = mapped_column(String(30), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    triggered_by: Mapped[str] = mapped_column(String(20), nullable=False)  # cron | webhook | manual
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)


class DunningEmail(Base):
    """
    Lifecycle notification intent, consumed by an external sender.

    At most one card_expiring row per organization per rolling
    CARD_EXPIRY_DEDUP_DAYS window.
    """

    __tablename__ = "dunning_emails"
    __table_args__ = (
        Index("idx_dunning_emails_org_type", "organization_id", "email_type", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    email_type: Mapped[str] = mapped_column(String(30), nullable=False)
    recipient_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    email_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default="pending", server_default=text("'pending'"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
