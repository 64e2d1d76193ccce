"""CSV rendering of payment snapshots.

Every field is quoted and embedded quotes are doubled. Each caller picks its
columns; the employee export adds trash details the customer never sees.
"""

import csv
import io
from datetime import datetime
from typing import Callable, Iterable

from payportal.store.schemas import PaymentOut

REVIEW_CSV_COLUMNS = (
    "id",
    "recipientName",
    "amount",
    "currency",
    "reference",
    "status",
    "createdAt",
    "processedAt",
    "failureReason",
    "reasonCode",
    "deletedAt",
    "deletedBy",
)

CUSTOMER_CSV_COLUMNS = (
    "id",
    "date",
    "recipientName",
    "recipientIBAN",
    "amount",
    "currency",
    "status",
    "reference",
    "purpose",
)


def _iso(value: datetime | None) -> str:
    return value.isoformat() if value is not None else ""


# `deletedAt`/`deletedBy` read fields only the employee snapshot carries.
CELLS: dict[str, Callable[[PaymentOut], str]] = {
    "id": lambda p: p.id,
    "date": lambda p: p.created_at.date().isoformat(),
    "recipientName": lambda p: p.recipient_name,
    "recipientIBAN": lambda p: p.recipient_iban,
    "amount": lambda p: f"{p.amount:.2f}",
    "currency": lambda p: p.currency,
    "reference": lambda p: p.reference,
    "purpose": lambda p: p.purpose,
    "status": lambda p: p.status,
    "createdAt": lambda p: _iso(p.created_at),
    "processedAt": lambda p: _iso(p.processed_at),
    "failureReason": lambda p: p.failure_reason or "",
    "reasonCode": lambda p: p.reason_code or "",
    "deletedAt": lambda p: _iso(p.deleted_at),
    "deletedBy": lambda p: p.deleted_by_name or p.deleted_by_user_id or "",
}


def export_csv(payments: Iterable[PaymentOut], columns: tuple[str, ...] = REVIEW_CSV_COLUMNS) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(columns)
    cells = [CELLS[column] for column in columns]
    for payment in payments:
        writer.writerow([cell(payment) for cell in cells])
    return buffer.getvalue()
