"""Payment store models.

`payments` holds the current state of each payment request; notes and the audit
trail are append-only child tables read back in insertion order.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payportal.common.db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive values read back from backends without tz support."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Payment(Base):
    """Current state of one international payment request."""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(String, index=True)

    recipient_name: Mapped[str] = mapped_column(String(100))
    recipient_email: Mapped[str] = mapped_column(String(254))
    recipient_iban: Mapped[str] = mapped_column(String(34))
    recipient_swift: Mapped[str] = mapped_column(String(11))
    recipient_address: Mapped[str] = mapped_column(String(200))
    recipient_city: Mapped[str] = mapped_column(String(100))
    recipient_country: Mapped[str] = mapped_column(String(2))

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    currency: Mapped[str] = mapped_column(String(3))
    reference: Mapped[str] = mapped_column(String(140))
    purpose: Mapped[str] = mapped_column(String(255))

    status: Mapped[str] = mapped_column(String(16), index=True, default="pending")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    failure_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    reason_code: Mapped[str | None] = mapped_column(String(100), nullable=True)

    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    deleted_by_user_id: Mapped[str | None] = mapped_column(String, nullable=True)
    deleted_by_name: Mapped[str | None] = mapped_column(String, nullable=True)

    assigned_to_user_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    assigned_to_name: Mapped[str | None] = mapped_column(String, nullable=True)

    escalated: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    escalated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    escalation_notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    notes: Mapped[list["PaymentNote"]] = relationship(
        back_populates="payment",
        order_by="PaymentNote.id",
        lazy="selectin",
        cascade="all, delete-orphan",
    )
    audit_log: Mapped[list["PaymentAuditEntry"]] = relationship(
        back_populates="payment",
        order_by="PaymentAuditEntry.id",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class PaymentNote(Base):
    """Employee collaboration note; text is stored already redacted."""

    __tablename__ = "payment_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payment_id: Mapped[str] = mapped_column(ForeignKey("payments.id"), index=True)
    text: Mapped[str] = mapped_column(String(1000))
    author_id: Mapped[str] = mapped_column(String)
    author_name: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    mentions: Mapped[list] = mapped_column(JSON, default=list)

    payment: Mapped[Payment] = relationship(back_populates="notes")


class PaymentAuditEntry(Base):
    """Immutable record of one state-changing action on a payment."""

    __tablename__ = "payment_audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payment_id: Mapped[str] = mapped_column(ForeignKey("payments.id"), index=True)
    actor_id: Mapped[str] = mapped_column(String)
    actor_name: Mapped[str | None] = mapped_column(String, nullable=True)
    action: Mapped[str] = mapped_column(String(32), index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    details: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    payment: Mapped[Payment] = relationship(back_populates="audit_log")
