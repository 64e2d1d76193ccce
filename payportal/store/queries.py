"""Filtered, paginated reads over the payment store.

Both services go through `find_payments`; the customer service always pins
`owner_id` to the caller.
"""

import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation

from pydantic import BaseModel
from sqlalchemy import ColumnElement, func, or_, select
from sqlalchemy.orm import Session

from payportal.common.state_machine import STATUSES
from payportal.store.models import Payment

MAX_PAGE = 1000
MAX_LIMIT = 100
DEFAULT_LIMIT = 10
MAX_KEYWORD_LENGTH = 100

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class PaymentFilters(BaseModel):
    """Normalized list filters; `None` means "do not filter on this"."""

    status: str | None = None
    keyword: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    include_deleted: bool = False
    assigned_to_me: bool = False
    escalated: bool | None = None
    owner_id: str | None = None


def _parse_date(raw: str | None) -> datetime | None:
    if not raw or not _ISO_DATE.match(raw):
        return None
    try:
        return datetime.strptime(raw, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def _parse_decimal(raw: str | None) -> Decimal | None:
    if raw is None or not str(raw).strip():
        return None
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def _parse_flag(raw: str | None) -> bool | None:
    if raw is None or raw == "":
        return None
    return str(raw).strip().lower() == "true"


def parse_filters(
    status: str | None = None,
    keyword: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    min_amount: str | None = None,
    max_amount: str | None = None,
    include_deleted: str | None = None,
    assigned_to: str | None = None,
    escalated: str | None = None,
) -> PaymentFilters:
    """Build filters from raw query-string values, dropping anything malformed."""

    normalized_status = status.strip().lower() if status else None
    trimmed = (keyword or "").strip()[:MAX_KEYWORD_LENGTH]
    return PaymentFilters(
        status=normalized_status if normalized_status in STATUSES else None,
        keyword=trimmed or None,
        start_date=_parse_date(start_date),
        end_date=_parse_date(end_date),
        min_amount=_parse_decimal(min_amount),
        max_amount=_parse_decimal(max_amount),
        include_deleted=_parse_flag(include_deleted) is True,
        assigned_to_me=(assigned_to or "").strip().lower() == "me",
        escalated=_parse_flag(escalated),
    )


def parse_pagination(page: str | int | None, limit: str | int | None) -> tuple[int, int]:
    """Clamp page to [1, MAX_PAGE] and limit to [1, MAX_LIMIT]; junk falls back to defaults."""

    try:
        page_value = int(page) if page is not None else 1
    except (TypeError, ValueError):
        page_value = 1
    try:
        limit_value = int(limit) if limit is not None else DEFAULT_LIMIT
    except (TypeError, ValueError):
        limit_value = DEFAULT_LIMIT
    page_value = page_value or 1
    limit_value = limit_value or DEFAULT_LIMIT
    return max(1, min(MAX_PAGE, page_value)), max(1, min(MAX_LIMIT, limit_value))


def filter_conditions(filters: PaymentFilters, caller_id: str | None = None) -> list[ColumnElement[bool]]:
    conditions: list[ColumnElement[bool]] = []
    if filters.owner_id is not None:
        conditions.append(Payment.user_id == filters.owner_id)
    if not filters.include_deleted:
        conditions.append(Payment.deleted_at.is_(None))
    if filters.status:
        conditions.append(Payment.status == filters.status)
    if filters.escalated is not None:
        conditions.append(Payment.escalated.is_(filters.escalated))
    if filters.assigned_to_me and caller_id:
        conditions.append(Payment.assigned_to_user_id == caller_id)
    if filters.start_date is not None:
        conditions.append(Payment.created_at >= filters.start_date)
    if filters.end_date is not None:
        # The end date names a whole day.
        conditions.append(Payment.created_at < filters.end_date + timedelta(days=1))
    if filters.min_amount is not None:
        conditions.append(Payment.amount >= filters.min_amount)
    if filters.max_amount is not None:
        conditions.append(Payment.amount <= filters.max_amount)
    if filters.keyword:
        # autoescape neutralizes LIKE wildcards in user input.
        conditions.append(
            or_(
                Payment.recipient_name.icontains(filters.keyword, autoescape=True),
                Payment.reference.icontains(filters.keyword, autoescape=True),
            )
        )
    return conditions


def find_payments(
    db: Session,
    filters: PaymentFilters,
    caller_id: str | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> tuple[list[Payment], int]:
    """Return `(rows, total)` newest first; without `page`/`limit` returns every match."""

    conditions = filter_conditions(filters, caller_id)
    stmt = select(Payment).where(*conditions).order_by(Payment.created_at.desc(), Payment.id.desc())
    if page is not None and limit is not None:
        stmt = stmt.offset((page - 1) * limit).limit(limit)
    rows = list(db.execute(stmt).scalars().all())
    total = db.execute(select(func.count()).select_from(Payment).where(*conditions)).scalar_one()
    return rows, int(total)
