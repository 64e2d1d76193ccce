"""Employee review workflow over stored payments.

Each action loads one payment, checks its preconditions, mutates explicit
fields, appends exactly one audit entry and commits once. A refused action
raises before anything is written.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any
from uuid import UUID

from payportal.common.auth import Principal
from payportal.common.errors import (
    InvalidReasonCode,
    InvalidTransition,
    NotFound,
    PortalError,
    StepUpRequired,
    ValidationFailed,
)
from payportal.common.logging import logger, payment_id_ctx
from payportal.common.metrics import bulk_action_items_total, payment_review_seconds, review_actions_total
from payportal.common.reasons import canonical_reason_code
from payportal.common.redaction import Redactor, default_redactor
from payportal.common.state_machine import (
    CANCELLED,
    COMPLETED,
    FAILED,
    TERMINAL_STATUSES,
    ensure_reason_editable,
    ensure_restorable,
    ensure_trashable,
    validate_transition,
)
from payportal.services.review import reports
from payportal.services.review.schemas import BulkItemResult, MentionIn
from payportal.store.models import Payment, PaymentAuditEntry, PaymentNote, as_utc, utcnow
from payportal.store.queries import PaymentFilters, find_payments
from payportal.store.schemas import AuditEntryOut, ReviewPaymentOut

MIN_REASON_LENGTH = 3
MAX_REASON_LENGTH = 500
MAX_NOTE_LENGTH = 1000
MAX_ESCALATION_NOTES_LENGTH = 1000
MAX_BULK_IDS = 100
BULK_ACTIONS = ("validate", "reject", "cancel", "trash", "restore")

# Per-item error tags reported by bulk actions.
_BULK_ERROR_TAGS: tuple[tuple[type[PortalError], str], ...] = (
    (NotFound, "not_found"),
    (InvalidReasonCode, "invalid_reason_code"),
    (ValidationFailed, "invalid_reason"),
    (InvalidTransition, "invalid_transition"),
)


def parse_payment_id(raw: Any) -> str | None:
    """Canonical form of a payment id, or None when it cannot be one."""

    try:
        return str(UUID(str(raw).strip()))
    except (TypeError, ValueError):
        return None


def bulk_error_tag(exc: PortalError) -> str:
    for error_type, tag in _BULK_ERROR_TAGS:
        if isinstance(exc, error_type):
            return tag
    return exc.code.lower()


def _required_reason(reason: str | None) -> str:
    text = (reason or "").strip()
    if len(text) < MIN_REASON_LENGTH:
        raise ValidationFailed(
            "Reason is required and must be at least 3 characters.",
            errors=[{"field": "reason", "message": "Reason must be at least 3 characters."}],
        )
    return _bounded_reason(text)


def _bounded_reason(text: str) -> str:
    if len(text) > MAX_REASON_LENGTH:
        raise ValidationFailed(
            "Reason is too long.",
            errors=[{"field": "reason", "message": f"Reason must be at most {MAX_REASON_LENGTH} characters."}],
        )
    return text


def _required_reason_code(code: str | None, action: str) -> str:
    canonical = canonical_reason_code(code)
    if canonical is None:
        raise InvalidReasonCode(f"Valid reasonCode is required for {action}.")
    return canonical


class ReviewService:
    """Applies employee review actions and answers the review dashboard's queries."""

    def __init__(
        self,
        session_factory,
        redactor: Redactor = default_redactor,
        service_name: str = "review",
        at_risk_hours: int = 24,
        stale_hours: int = 48,
    ) -> None:
        self.session_factory = session_factory
        self.redactor = redactor
        self.service_name = service_name
        self.at_risk_hours = at_risk_hours
        self.stale_hours = stale_hours

    def _load(self, db, payment_id: Any) -> Payment:
        canonical = parse_payment_id(payment_id)
        payment = db.get(Payment, canonical) if canonical else None
        if payment is None:
            raise NotFound()
        payment_id_ctx.set(payment.id)
        return payment

    @staticmethod
    def _audit(
        payment: Payment, principal: Principal, action: str, now: datetime, details: str | None = None
    ) -> None:
        payment.audit_log.append(
            PaymentAuditEntry(
                actor_id=principal.user_id,
                actor_name=principal.display_name,
                action=action,
                timestamp=now,
                details=details,
            )
        )

    def _record(self, action: str, payment: Payment) -> None:
        review_actions_total.labels(service=self.service_name, action=action).inc()
        if action in ("validate", "reject", "cancel") and payment.status in TERMINAL_STATUSES:
            elapsed = (as_utc(payment.processed_at) - as_utc(payment.created_at)).total_seconds()
            payment_review_seconds.labels(
                service=self.service_name,
                terminal_status=payment.status,
            ).observe(max(0.0, elapsed))

    def _apply(
        self,
        principal: Principal,
        payment_id: Any,
        action: str,
        mutate: Callable[[Payment, datetime], str | None],
    ) -> ReviewPaymentOut:
        """Run `mutate` against one payment in its own unit of work.

        `mutate` raises to refuse the action, otherwise returns the audit details.
        """

        with self.session_factory() as db:
            payment = self._load(db, payment_id)
            now = utcnow()
            details = mutate(payment, now)
            payment.updated_at = now
            self._audit(payment, principal, action, now, details)
            db.commit()
            self._record(action, payment)
            logger.info("review action applied action=%s payment_id=%s status=%s", action, payment.id, payment.status)
            return ReviewPaymentOut.model_validate(payment)

    # Mutations shared by single and bulk actions. Each checks its own
    # preconditions before touching the row.

    @staticmethod
    def _validate(payment: Payment, now: datetime, details: str | None = None) -> str | None:
        validate_transition(payment.status, COMPLETED)
        payment.status = COMPLETED
        payment.processed_at = now
        payment.failure_reason = None
        return details

    @staticmethod
    def _reject(payment: Payment, now: datetime, reason: str, reason_code: str, details: str | None = None) -> str:
        if payment.status == COMPLETED:
            raise InvalidTransition("Completed payments cannot be rejected.")
        validate_transition(payment.status, FAILED)
        payment.status = FAILED
        payment.failure_reason = reason
        payment.reason_code = reason_code
        payment.processed_at = now
        return details or f"reasonCode={reason_code}"

    @staticmethod
    def _cancel(
        payment: Payment, now: datetime, reason: str | None, reason_code: str, details: str | None = None
    ) -> str:
        if payment.status in TERMINAL_STATUSES:
            raise InvalidTransition("Only pending or processing payments can be cancelled.")
        validate_transition(payment.status, CANCELLED)
        payment.status = CANCELLED
        payment.failure_reason = reason
        payment.reason_code = reason_code
        payment.processed_at = now
        return details or f"reasonCode={reason_code}"

    @staticmethod
    def _trash(payment: Payment, principal: Principal, now: datetime, details: str | None = None) -> str | None:
        ensure_trashable(payment.status, payment.deleted_at is not None)
        payment.deleted_at = now
        payment.deleted_by_user_id = principal.user_id
        payment.deleted_by_name = principal.display_name
        return details

    @staticmethod
    def _restore(payment: Payment, details: str | None = None) -> str | None:
        ensure_restorable(payment.deleted_at is not None)
        payment.deleted_at = None
        payment.deleted_by_user_id = None
        payment.deleted_by_name = None
        return details

    def list_all(
        self, principal: Principal, filters: PaymentFilters, page: int, limit: int
    ) -> tuple[list[ReviewPaymentOut], int]:
        with self.session_factory() as db:
            rows, total = find_payments(db, filters, caller_id=principal.user_id, page=page, limit=limit)
            return [ReviewPaymentOut.model_validate(row) for row in rows], total

    def export_rows(self, principal: Principal, filters: PaymentFilters) -> list[ReviewPaymentOut]:
        """Every payment matching `filters`, unpaginated, for CSV export."""

        with self.session_factory() as db:
            rows, _ = find_payments(db, filters, caller_id=principal.user_id)
            return [ReviewPaymentOut.model_validate(row) for row in rows]

    def get_payment(self, payment_id: Any) -> ReviewPaymentOut:
        with self.session_factory() as db:
            return ReviewPaymentOut.model_validate(self._load(db, payment_id))

    def get_audit(self, payment_id: Any) -> list[AuditEntryOut]:
        with self.session_factory() as db:
            payment = self._load(db, payment_id)
            return [AuditEntryOut.model_validate(entry) for entry in payment.audit_log]

    def validate(self, principal: Principal, payment_id: Any) -> ReviewPaymentOut:
        """Approve a pending or processing payment."""

        return self._apply(principal, payment_id, "validate", lambda payment, now: self._validate(payment, now))

    def reject(
        self, principal: Principal, payment_id: Any, reason: str | None, reason_code: str | None
    ) -> ReviewPaymentOut:
        code = _required_reason_code(reason_code, "rejection")
        text = _required_reason(reason)
        return self._apply(
            principal, payment_id, "reject", lambda payment, now: self._reject(payment, now, text, code)
        )

    def cancel(
        self, principal: Principal, payment_id: Any, reason: str | None, reason_code: str | None
    ) -> ReviewPaymentOut:
        code = _required_reason_code(reason_code, "cancellation")
        text = _bounded_reason((reason or "").strip()) or None
        return self._apply(
            principal, payment_id, "cancel", lambda payment, now: self._cancel(payment, now, text, code)
        )

    def update_reason(
        self, principal: Principal, payment_id: Any, reason: str | None, reason_code: str | None
    ) -> ReviewPaymentOut:
        """Rewrite the failure reason (and optionally the code) of a failed or cancelled payment."""

        text = _required_reason(reason)
        code = None
        if reason_code is not None and reason_code.strip():
            code = _required_reason_code(reason_code, "reason updates")

        def mutate(payment: Payment, _: datetime) -> str | None:
            ensure_reason_editable(payment.status)
            payment.failure_reason = text
            if code is not None:
                payment.reason_code = code
            return f"reasonCode={code}" if code else None

        return self._apply(principal, payment_id, "update_reason", mutate)

    def trash(self, principal: Principal, payment_id: Any, confirmed: bool) -> ReviewPaymentOut:
        if not confirmed:
            raise StepUpRequired()
        return self._apply(
            principal, payment_id, "trash", lambda payment, now: self._trash(payment, principal, now)
        )

    def restore(self, principal: Principal, payment_id: Any) -> ReviewPaymentOut:
        return self._apply(principal, payment_id, "restore", lambda payment, _: self._restore(payment))

    def assign(
        self, principal: Principal, payment_id: Any, assignee_user_id: str | None, assignee_name: str | None = None
    ) -> ReviewPaymentOut:
        """Assign to `assignee_user_id`, or unassign when it is empty."""

        assignee = (assignee_user_id or "").strip()
        if not assignee:

            def unassign(payment: Payment, _: datetime) -> None:
                payment.assigned_to_user_id = None
                payment.assigned_to_name = None
                return None

            return self._apply(principal, payment_id, "unassign", unassign)

        def mutate(payment: Payment, _: datetime) -> str:
            payment.assigned_to_user_id = assignee
            payment.assigned_to_name = (assignee_name or "").strip()
            return f"to={assignee}"

        return self._apply(principal, payment_id, "assign", mutate)

    def escalate(
        self, principal: Principal, payment_id: Any, escalated: bool, notes: str | None = None
    ) -> ReviewPaymentOut:
        text = (notes or "").strip()
        if len(text) > MAX_ESCALATION_NOTES_LENGTH:
            raise ValidationFailed(
                "Escalation notes are too long.",
                errors=[
                    {
                        "field": "notes",
                        "message": f"Escalation notes must be at most {MAX_ESCALATION_NOTES_LENGTH} characters.",
                    }
                ],
            )

        def mutate(payment: Payment, now: datetime) -> None:
            payment.escalated = bool(escalated)
            payment.escalated_at = now if escalated else None
            payment.escalation_notes = text or None
            return None

        return self._apply(principal, payment_id, "escalate" if escalated else "deescalate", mutate)

    def add_note(
        self, principal: Principal, payment_id: Any, text: str | None, mentions: list[MentionIn] | None = None
    ) -> ReviewPaymentOut:
        """Append a redacted collaboration note."""

        trimmed = (text or "").strip()
        if not trimmed:
            raise ValidationFailed(
                "Note text is required.", errors=[{"field": "text", "message": "Note text is required."}]
            )
        safe_text = self.redactor.redact(trimmed)
        if len(safe_text) > MAX_NOTE_LENGTH:
            raise ValidationFailed(
                "Note text is too long.",
                errors=[{"field": "text", "message": f"Note text must be at most {MAX_NOTE_LENGTH} characters."}],
            )
        mention_rows = [{"userId": mention.user_id, "name": mention.name or ""} for mention in mentions or []]

        def mutate(payment: Payment, now: datetime) -> str:
            payment.notes.append(
                PaymentNote(
                    text=safe_text,
                    author_id=principal.user_id,
                    author_name=principal.display_name,
                    created_at=now,
                    mentions=mention_rows,
                )
            )
            return f"length={len(safe_text)}"

        return self._apply(principal, payment_id, "add_note", mutate)

    def _bulk_mutation(
        self, action: str, principal: Principal, reason: str | None, reason_code: str | None
    ) -> Callable[[Payment, datetime], str | None]:
        if action == "validate":
            return lambda payment, now: self._validate(payment, now, "bulk")
        if action == "reject":

            def reject(payment: Payment, now: datetime) -> str:
                code = _required_reason_code(reason_code, "rejection")
                text = _required_reason(reason)
                return self._reject(payment, now, text, code, f"bulk; reasonCode={code}")

            return reject
        if action == "cancel":

            def cancel(payment: Payment, now: datetime) -> str:
                code = _required_reason_code(reason_code, "cancellation")
                text = _bounded_reason((reason or "").strip()) or None
                return self._cancel(payment, now, text, code, f"bulk; reasonCode={code}")

            return cancel
        if action == "trash":
            return lambda payment, now: self._trash(payment, principal, now, "bulk soft-delete")
        return lambda payment, _: self._restore(payment, "bulk restore")

    def _bulk_item(
        self,
        principal: Principal,
        action: str,
        raw_id: Any,
        mutate: Callable[[Payment, datetime], str | None],
    ) -> BulkItemResult:
        item_id = str(raw_id)
        if parse_payment_id(raw_id) is None:
            return BulkItemResult(id=item_id, ok=False, error="invalid_id")
        try:
            self._apply(principal, raw_id, action, mutate)
        except PortalError as exc:
            return BulkItemResult(id=item_id, ok=False, error=bulk_error_tag(exc))
        return BulkItemResult(id=item_id, ok=True)

    def bulk_action(
        self,
        principal: Principal,
        action: str | None,
        ids: list[Any],
        reason: str | None = None,
        reason_code: str | None = None,
        confirmed: bool = False,
    ) -> list[BulkItemResult]:
        """Apply one action to many payments, reporting per-id outcomes.

        Ids are processed in order, each in its own unit of work, so one
        failure never rolls back or blocks the others.
        """

        if not confirmed:
            raise StepUpRequired()
        if action not in BULK_ACTIONS:
            raise ValidationFailed(
                "Unsupported bulk action.",
                errors=[{"field": "action", "message": f"action must be one of {', '.join(BULK_ACTIONS)}."}],
            )
        if not ids:
            raise ValidationFailed("ids array is required.", errors=[{"field": "ids", "message": "ids is required."}])
        if len(ids) > MAX_BULK_IDS:
            raise ValidationFailed(
                "Too many ids.",
                errors=[{"field": "ids", "message": f"At most {MAX_BULK_IDS} ids per request."}],
            )

        mutate = self._bulk_mutation(action, principal, reason, reason_code)
        results: list[BulkItemResult] = []
        for raw_id in ids:
            result = self._bulk_item(principal, action, raw_id, mutate)
            results.append(result)
            outcome = "ok" if result.ok else result.error
            bulk_action_items_total.labels(service=self.service_name, action=action, outcome=outcome).inc()
        logger.info(
            "bulk action finished action=%s requested=%s succeeded=%s",
            action,
            len(ids),
            sum(1 for result in results if result.ok),
        )
        return results

    def stats(self) -> dict[str, Any]:
        with self.session_factory() as db:
            return reports.global_stats(db, utcnow())

    def trends(self) -> dict[str, Any]:
        with self.session_factory() as db:
            return reports.daily_trends(db)

    def queue_health(self) -> dict[str, int]:
        with self.session_factory() as db:
            return reports.queue_health(db, utcnow(), self.at_risk_hours, self.stale_hours)
