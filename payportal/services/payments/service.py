"""Customer-side payment operations.

Every query is scoped to the calling customer; another customer's payment is
indistinguishable from one that does not exist.
"""

import calendar
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select

from payportal.common.auth import Principal
from payportal.common.errors import InvalidTransition, NotFound, ValidationFailed
from payportal.common.logging import logger, payment_id_ctx
from payportal.common.metrics import payment_created_total, payment_requests_total
from payportal.common.redaction import mask_iban
from payportal.common.state_machine import CANCELLED, PENDING, validate_transition
from payportal.common.validation import collect_payment_errors, normalize_iban, normalize_swift, validate_amount
from payportal.services.payments.schemas import PaymentCreateRequest
from payportal.store.models import Payment, PaymentAuditEntry, as_utc, utcnow
from payportal.store.queries import PaymentFilters, filter_conditions, find_payments
from payportal.store.schemas import PaymentOut


MIN_YEAR = 1
MAX_YEAR = 9998


def owner_filters(principal: Principal, filters: PaymentFilters | None = None) -> PaymentFilters:
    """Keep the status and date filters a customer may use and pin the owner to the caller."""

    filters = filters or PaymentFilters()
    return PaymentFilters(
        status=filters.status,
        start_date=filters.start_date,
        end_date=filters.end_date,
        owner_id=principal.user_id,
    )


def parse_year(raw: str | int | None) -> int:
    """Junk or out-of-range years fall back to the current UTC year."""

    try:
        year = int(str(raw).strip())
    except (TypeError, ValueError):
        return utcnow().year
    return year if MIN_YEAR <= year <= MAX_YEAR else utcnow().year


class PaymentService:
    """Creates, lists and cancels payments on behalf of their owner."""

    def __init__(self, session_factory, max_amount: Decimal | int = 1_000_000, service_name: str = "payments") -> None:
        self.session_factory = session_factory
        self.max_amount = Decimal(max_amount)
        self.service_name = service_name

    def _owned(self, db, principal: Principal, payment_id: str) -> Payment:
        payment = db.execute(
            select(Payment).where(
                Payment.id == payment_id,
                Payment.user_id == principal.user_id,
                Payment.deleted_at.is_(None),
            )
        ).scalar_one_or_none()
        if payment is None:
            raise NotFound()
        return payment

    def create_payment(self, principal: Principal, req: PaymentCreateRequest) -> PaymentOut:
        """Validate every field, then persist the payment as `pending`."""

        payment_requests_total.labels(service=self.service_name).inc()
        fields = req.wire_fields()
        errors = collect_payment_errors(fields, self.max_amount)
        if errors:
            raise ValidationFailed(errors=[error.model_dump() for error in errors])

        amount = validate_amount(req.amount, self.max_amount).value
        now = utcnow()
        with self.session_factory() as db:
            payment = Payment(
                user_id=principal.user_id,
                recipient_name=req.recipient_name.strip(),
                recipient_email=req.recipient_email.strip().lower(),
                recipient_iban=normalize_iban(req.recipient_iban),
                recipient_swift=normalize_swift(req.recipient_swift),
                recipient_address=req.recipient_address.strip(),
                recipient_city=req.recipient_city.strip(),
                recipient_country=req.recipient_country.strip().upper(),
                amount=amount,
                currency=req.currency.strip().upper(),
                reference=req.reference.strip(),
                purpose=req.purpose.strip(),
                status=PENDING,
                created_at=now,
                updated_at=now,
                escalated=False,
            )
            db.add(payment)
            db.commit()
            payment_id_ctx.set(payment.id)
            logger.info(
                "payment created payment_id=%s user_id=%s amount=%s currency=%s recipient_iban=%s",
                payment.id,
                principal.user_id,
                payment.amount,
                payment.currency,
                mask_iban(payment.recipient_iban),
            )
            payment_created_total.labels(service=self.service_name, currency=payment.currency).inc()
            return PaymentOut.model_validate(payment)

    def list_own_payments(
        self, principal: Principal, page: int, limit: int, filters: PaymentFilters | None = None
    ) -> tuple[list[PaymentOut], int]:
        with self.session_factory() as db:
            rows, total = find_payments(db, owner_filters(principal, filters), page=page, limit=limit)
            return [PaymentOut.model_validate(row) for row in rows], total

    def export_own_payments(self, principal: Principal, filters: PaymentFilters | None = None) -> list[PaymentOut]:
        """Every visible payment of the caller matching `filters`, newest first."""

        with self.session_factory() as db:
            rows, _ = find_payments(db, owner_filters(principal, filters))
            logger.info("transaction history exported user_id=%s count=%s", principal.user_id, len(rows))
            return [PaymentOut.model_validate(row) for row in rows]

    def history_summary(self, principal: Principal, filters: PaymentFilters | None = None) -> dict[str, Any]:
        """Totals over the same payments `list_own_payments` pages through."""

        conditions = filter_conditions(owner_filters(principal, filters))
        with self.session_factory() as db:
            rows = db.execute(
                select(Payment.status, func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0))
                .where(*conditions)
                .group_by(Payment.status)
                .order_by(Payment.status)
            ).all()
        breakdown = {status: {"count": int(count), "totalAmount": float(total)} for status, count, total in rows}
        count = sum(item["count"] for item in breakdown.values())
        total_amount = sum(Decimal(str(total)) for _, _, total in rows)
        return {
            "totalAmount": float(total_amount),
            "totalTransactions": count,
            "avgAmount": float(total_amount / count) if count else 0.0,
            "statusBreakdown": breakdown,
        }

    def own_monthly_summary(self, principal: Principal, year: int) -> dict[str, Any]:
        """Per-month count and amount of the caller's payments created in `year`, split by status.

        Months without payments are left out.
        """

        start = datetime(year, 1, 1, tzinfo=timezone.utc)
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
        with self.session_factory() as db:
            rows = db.execute(
                select(Payment.created_at, Payment.status, Payment.amount).where(
                    Payment.user_id == principal.user_id,
                    Payment.deleted_at.is_(None),
                    Payment.created_at >= start,
                    Payment.created_at < end,
                )
            ).all()

        months: dict[int, dict[str, list[Decimal]]] = defaultdict(lambda: defaultdict(list))
        for created_at, status, amount in rows:
            months[as_utc(created_at).month][status].append(Decimal(amount))
        summary = []
        for number in sorted(months):
            by_status = {
                status: {"count": len(amounts), "totalAmount": float(sum(amounts))}
                for status, amounts in sorted(months[number].items())
            }
            summary.append(
                {
                    "month": calendar.month_name[number],
                    "monthNumber": number,
                    "totalTransactions": sum(item["count"] for item in by_status.values()),
                    "totalAmount": float(sum(sum(amounts) for amounts in months[number].values())),
                    "byStatus": by_status,
                }
            )
        return {"year": year, "summary": summary}

    def get_own_payment(self, principal: Principal, payment_id: str) -> PaymentOut:
        with self.session_factory() as db:
            return PaymentOut.model_validate(self._owned(db, principal, payment_id))

    def cancel_own_payment(self, principal: Principal, payment_id: str) -> PaymentOut:
        """Owner cancel: only while `pending`, and without a reason code."""

        payment_id_ctx.set(payment_id)
        with self.session_factory() as db:
            payment = self._owned(db, principal, payment_id)
            if payment.status != PENDING:
                raise InvalidTransition("Only pending payments can be cancelled.")
            validate_transition(payment.status, CANCELLED)
            now = utcnow()
            payment.status = CANCELLED
            payment.processed_at = now
            payment.updated_at = now
            payment.audit_log.append(
                PaymentAuditEntry(
                    actor_id=principal.user_id,
                    actor_name=principal.display_name,
                    action="cancel",
                    timestamp=now,
                    details="self-cancel",
                )
            )
            db.commit()
            logger.info("payment cancelled by owner payment_id=%s user_id=%s", payment.id, principal.user_id)
            return PaymentOut.model_validate(payment)

    def own_stats(self, principal: Principal) -> dict[str, Any]:
        """Count and total amount per status for the caller's visible payments."""

        with self.session_factory() as db:
            rows = db.execute(
                select(Payment.status, func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0))
                .where(Payment.user_id == principal.user_id, Payment.deleted_at.is_(None))
                .group_by(Payment.status)
            ).all()
        by_status = {
            status: {"count": int(count), "totalAmount": float(total)} for status, count, total in rows
        }
        return {"totalPayments": sum(item["count"] for item in by_status.values()), "byStatus": by_status}
