"""SQLAlchemy ORM models for automated email sequences."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from estate_api.db.base import Base
from estate_api.db.enums import QueueStatus
from estate_api.db.types import utcnow


class EmailSequence(Base):
    """
    Tenant-defined email automation.

    trigger_stage names the pipeline stage the sequence is meant for;
    enrollment itself is always an explicit start action.
    """

    __tablename__ = "email_sequences"
    __table_args__ = (
        Index(
            "idx_email_sequences_trigger",
            "organization_id",
            "profile_type",
            "trigger_stage",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    profile_type: Mapped[str] = mapped_column(String(10), nullable=False)  # buyer | seller
    trigger_stage: Mapped[str] = mapped_column(String(30), nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    steps: Mapped[list["EmailSequenceStep"]] = relationship(
        back_populates="sequence",
        cascade="all, delete-orphan",
        order_by="EmailSequenceStep.step_number",
    )


class EmailSequenceStep(Base):
    """One email in a sequence. step_number runs 1..N without gaps."""

    __tablename__ = "email_sequence_steps"
    __table_args__ = (
        UniqueConstraint("sequence_id", "step_number", name="uq_sequence_step_number"),
        CheckConstraint("delay_hours >= 0", name="ck_sequence_step_delay_non_negative"),
        CheckConstraint("step_number >= 1", name="ck_sequence_step_number_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    sequence_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("email_sequences.id", ondelete="CASCADE"), nullable=False
    )
    step_number: Mapped[int] = mapped_column(Integer, nullable=False)
    template_key: Mapped[str] = mapped_column(String(100), nullable=False)
    delay_hours: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    sequence: Mapped["EmailSequence"] = relationship(back_populates="steps")


class ProfileEmailQueue(Base):
    """
    One scheduled send of one sequence step for one profile.

    References exactly one of buyer_profile_id / seller_profile_id.
    Rows are created pending in bulk at enrollment, flipped to sent by the
    external dispatcher, and never leave cancelled.
    """

    __tablename__ = "profile_email_queue"
    __table_args__ = (
        CheckConstraint(
            "(buyer_profile_id IS NULL) <> (seller_profile_id IS NULL)",
            name="ck_profile_email_queue_one_profile",
        ),
        Index("idx_profile_email_queue_buyer_status", "buyer_profile_id", "status"),
        Index("idx_profile_email_queue_seller_status", "seller_profile_id", "status"),
        Index("idx_profile_email_queue_due", "status", "scheduled_for"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    buyer_profile_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("buyer_profiles.id", ondelete="CASCADE"), nullable=True
    )
    seller_profile_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("seller_profiles.id", ondelete="CASCADE"), nullable=True
    )
    sequence_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("email_sequences.id", ondelete="CASCADE"), nullable=False
    )
    step_number: Mapped[int] = mapped_column(Integer, nullable=False)
    template_key: Mapped[str | None] = mapped_column(String(100), nullable=True)
    scheduled_for: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=QueueStatus.PENDING.value,
        server_default=text("'pending'"),
        nullable=False,
    )
    cancelled_reason: Mapped[str | None] = mapped_column(String(50), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
