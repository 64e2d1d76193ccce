"""Read-only snapshots of stored payments, serialized with camelCase names."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from payportal.store.models import as_utc


class SnapshotModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        frozen=True,
    )


class Mention(SnapshotModel):
    user_id: str
    name: str = ""


class NoteOut(SnapshotModel):
    text: str
    author_id: str
    author_name: str | None = None
    created_at: datetime
    mentions: list[Mention] = []

    @field_validator("created_at")
    @classmethod
    def normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)


class AuditEntryOut(SnapshotModel):
    actor_id: str
    actor_name: str | None = None
    action: str
    timestamp: datetime
    details: str | None = None

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)


class PaymentOut(SnapshotModel):
    """What the owning customer sees of a payment."""

    id: str
    user_id: str
    recipient_name: str
    recipient_email: str
    recipient_iban: str = Field(alias="recipientIBAN")
    recipient_swift: str = Field(alias="recipientSWIFT")
    recipient_address: str
    recipient_city: str
    recipient_country: str
    amount: Decimal
    currency: str
    reference: str
    purpose: str
    status: str
    created_at: datetime
    updated_at: datetime
    processed_at: datetime | None = None
    failure_reason: str | None = None
    reason_code: str | None = None

    @field_validator("created_at", "updated_at", "processed_at")
    @classmethod
    def normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)


class ReviewPaymentOut(PaymentOut):
    """Employee view: adds trash, assignment, escalation and collaboration data."""

    deleted_at: datetime | None = None
    deleted_by_user_id: str | None = None
    deleted_by_name: str | None = None
    assigned_to_user_id: str | None = None
    assigned_to_name: str | None = None
    escalated: bool = False
    escalated_at: datetime | None = None
    escalation_notes: str | None = None
    notes: list[NoteOut] = []
    audit_log: list[AuditEntryOut] = []

    @field_validator("deleted_at", "escalated_at")
    @classmethod
    def normalize_review_timestamps(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)
