"""SQLAlchemy ORM models for the buyer/seller CRM pipeline."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from estate_api.db.base import Base
from estate_api.db.types import JSONType, utcnow


class SellerProfile(Base):
    """A vendor moving through the seller pipeline."""

    __tablename__ = "seller_profiles"
    __table_args__ = (
        Index("idx_seller_profiles_org_stage", "organization_id", "stage"),
        Index("idx_seller_profiles_email", "email"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    stage: Mapped[str] = mapped_column(
        String(30), default="lead", server_default=text("'lead'"), nullable=False
    )
    source: Mapped[str] = mapped_column(
        String(50), default="manual", server_default=text("'manual'"), nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)
    last_contact_at: Mapped[datetime | None] = mapped_column(nullable=True)


class BuyerProfile(Base):
    """A prospective purchaser moving through the buyer pipeline."""

    __tablename__ = "buyer_profiles"
    __table_args__ = (
        Index("idx_buyer_profiles_org_stage", "organization_id", "stage"),
        Index("idx_buyer_profiles_email", "email"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    stage: Mapped[str] = mapped_column(
        String(30), default="lead", server_default=text("'lead'"), nullable=False
    )
    source: Mapped[str] = mapped_column(
        String(50), default="manual", server_default=text("'manual'"), nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)
    last_contact_at: Mapped[datetime | None] = mapped_column(nullable=True)


class CrmActivity(Base):
    """
    Append-only timeline event for a buyer or seller profile.

    Written as a side effect of stage changes, sequence actions
    and reply detection.
    """

    __tablename__ = "crm_activities"
    __table_args__ = (
        CheckConstraint(
            "(buyer_profile_id IS NULL) <> (seller_profile_id IS NULL)",
            name="ck_crm_activities_one_profile",
        ),
        Index("idx_crm_activities_buyer", "buyer_profile_id", "created_at"),
        Index("idx_crm_activities_seller", "seller_profile_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    buyer_profile_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("buyer_profiles.id", ondelete="CASCADE"), nullable=True
    )
    seller_profile_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("seller_profiles.id", ondelete="CASCADE"), nullable=True
    )
    activity_type: Mapped[str] = mapped_column(String(30), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    created_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
