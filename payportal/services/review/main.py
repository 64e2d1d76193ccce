"""Employee review API.

Every route requires the `employee` role. Destructive actions (trash, bulk)
additionally require the `x-action-confirm: true` step-up header.
"""

from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Query
from fastapi.responses import Response

from payportal.common.auth import EMPLOYEE, Principal, require_roles
from payportal.common.config import settings
from payportal.common.db import SessionLocal
from payportal.common.http import (
    envelope,
    install_error_handlers,
    install_metrics_middleware,
    paginated,
    rate_limited,
    step_up_confirmed,
)
from payportal.common.logging import configure_logging
from payportal.common.metrics import metrics_response
from payportal.common.rate_limit import build_rate_limiters
from payportal.common.reasons import REASON_CODES
from payportal.common.startup import ensure_store_or_exit, log_startup_config
from payportal.common.tracing import instrument_app, setup_tracing
from payportal.services.review.schemas import AssignRequest, BulkRequest, EscalateRequest, NoteRequest, ReasonRequest
from payportal.services.review.service import ReviewService
from payportal.store.export import export_csv
from payportal.store.queries import PaymentFilters, parse_filters, parse_pagination

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(
    settings.service_name,
    [
        "SERVICE_NAME",
        "DATABASE_DSN",
        "JWT_SECRET",
        "RATE_LIMIT_BACKEND",
        "REDIS_URL",
        "QUEUE_AT_RISK_HOURS",
        "QUEUE_STALE_HOURS",
    ],
)
service = ReviewService(
    SessionLocal,
    service_name=settings.service_name,
    at_risk_hours=settings.queue_at_risk_hours,
    stale_hours=settings.queue_stale_hours,
)
employee = require_roles(EMPLOYEE)


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Refuse to serve until the payment store answers."""

    ensure_store_or_exit(settings.service_name)
    yield


def list_filters(
    status: str | None = None,
    keyword: str | None = None,
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    min_amount: str | None = Query(default=None, alias="minAmount"),
    max_amount: str | None = Query(default=None, alias="maxAmount"),
    include_deleted: str | None = Query(default=None, alias="includeDeleted"),
    assigned_to: str | None = Query(default=None, alias="assignedTo"),
    escalated: str | None = None,
) -> PaymentFilters:
    """Query-string filters shared by the list and export endpoints."""

    return parse_filters(
        status=status,
        keyword=keyword,
        start_date=start_date,
        end_date=end_date,
        min_amount=min_amount,
        max_amount=max_amount,
        include_deleted=include_deleted,
        assigned_to=assigned_to,
        escalated=escalated,
    )


router = APIRouter(prefix="/api/employee", dependencies=[Depends(employee)])


@router.get("/payments")
def list_payments(
    page: str | None = None,
    limit: str | None = None,
    filters: PaymentFilters = Depends(list_filters),
    principal: Principal = Depends(employee),
):
    page_value, limit_value = parse_pagination(page, limit)
    items, total = service.list_all(principal, filters, page_value, limit_value)
    return paginated("Filtered payments retrieved successfully.", items, page_value, limit_value, total)


@router.get("/payments/stats")
def payment_stats():
    return envelope("Expanded stats retrieved successfully.", service.stats())


@router.get("/payments/trends")
def payment_trends():
    return envelope("Trend charts data.", service.trends())


@router.get("/payments/queue-health")
def payment_queue_health():
    return envelope("Queue health.", service.queue_health())


@router.get("/payments/export")
def export_payments(filters: PaymentFilters = Depends(list_filters), principal: Principal = Depends(employee)):
    """Download every matching payment as CSV."""

    body = export_csv(service.export_rows(principal, filters))
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="payments_export.csv"'},
    )


@router.get("/reasons")
def reason_codes():
    return envelope("Reason codes.", list(REASON_CODES))


@router.get("/payments/{payment_id}")
def get_payment(payment_id: str):
    return envelope("Payment retrieved successfully.", {"payment": service.get_payment(payment_id)})


@router.api_route(
    "/payments/{payment_id}/cancel",
    methods=["PUT", "POST"],
    dependencies=[Depends(rate_limited("payment"))],
)
def cancel_payment(payment_id: str, req: ReasonRequest, principal: Principal = Depends(employee)):
    """Cancel a pending or processing payment; `reasonCode` is required."""

    payment = service.cancel(principal, payment_id, req.reason, req.reason_code)
    return envelope("Payment cancelled successfully.", {"payment": payment})


@router.put("/payments/{payment_id}/validate", dependencies=[Depends(rate_limited("payment"))])
def validate_payment(payment_id: str, principal: Principal = Depends(employee)):
    payment = service.validate(principal, payment_id)
    return envelope("Payment validated successfully.", {"payment": payment})


@router.put("/payments/{payment_id}/reject", dependencies=[Depends(rate_limited("payment"))])
def reject_payment(payment_id: str, req: ReasonRequest, principal: Principal = Depends(employee)):
    payment = service.reject(principal, payment_id, req.reason, req.reason_code)
    return envelope("Payment rejected successfully.", {"payment": payment})


@router.put("/payments/{payment_id}/reason")
def update_reason(payment_id: str, req: ReasonRequest, principal: Principal = Depends(employee)):
    payment = service.update_reason(principal, payment_id, req.reason, req.reason_code)
    return envelope("Reason updated successfully.", {"payment": payment})


@router.delete("/payments/{payment_id}")
def trash_payment(
    payment_id: str,
    confirmed: bool = Depends(step_up_confirmed),
    principal: Principal = Depends(employee),
):
    """Soft-delete a terminal payment into Trash."""

    payment = service.trash(principal, payment_id, confirmed)
    return envelope("Payment moved to Trash.", {"payment": payment})


@router.put("/payments/{payment_id}/restore")
def restore_payment(payment_id: str, principal: Principal = Depends(employee)):
    payment = service.restore(principal, payment_id)
    return envelope("Payment restored successfully.", {"payment": payment})


@router.post("/payments/bulk")
def bulk_action(
    req: BulkRequest,
    confirmed: bool = Depends(step_up_confirmed),
    principal: Principal = Depends(employee),
):
    """Apply validate/reject/cancel/trash/restore to many payments at once."""

    results = service.bulk_action(principal, req.action, req.ids, req.reason, req.reason_code, confirmed)
    return envelope("Bulk action processed.", {"results": results})


@router.post("/payments/{payment_id}/notes")
def add_note(payment_id: str, req: NoteRequest, principal: Principal = Depends(employee)):
    payment = service.add_note(principal, payment_id, req.text, req.mentions)
    return envelope("Note added successfully.", {"payment": payment})


@router.get("/payments/{payment_id}/audit")
def payment_audit(payment_id: str):
    return envelope("Audit log retrieved.", service.get_audit(payment_id))


@router.put("/payments/{payment_id}/assign")
def assign_payment(payment_id: str, req: AssignRequest, principal: Principal = Depends(employee)):
    payment = service.assign(principal, payment_id, req.assignee_user_id, req.assignee_name)
    return envelope("Assignment updated.", {"payment": payment})


@router.put("/payments/{payment_id}/escalate")
def escalate_payment(payment_id: str, req: EscalateRequest, principal: Principal = Depends(employee)):
    payment = service.escalate(principal, payment_id, req.escalated, req.notes)
    return envelope("Escalation updated.", {"payment": payment})


app = FastAPI(title="Payment Portal Review API", lifespan=lifespan)
app.state.rate_limiters = build_rate_limiters(settings)
install_error_handlers(app)
install_metrics_middleware(app)
instrument_app(app)
app.include_router(router)


@app.get("/health")
def health():
    """Container health probe endpoint."""

    return {"ok": True}


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()
