"""Customer payment API.

Customers submit international payment requests, list and inspect their own
payments, and cancel them while they are still pending. The transaction
endpoints add totals, a monthly breakdown and a CSV download of the same
history. The IBAN/SWIFT check endpoints are public so the form can validate
before submission.
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Query
from fastapi.responses import JSONResponse, Response

from payportal.common.auth import CUSTOMER, Principal, require_roles
from payportal.common.config import settings
from payportal.common.db import SessionLocal
from payportal.common.http import (
    envelope,
    error_body,
    install_error_handlers,
    install_metrics_middleware,
    paginated,
    rate_limited,
)
from payportal.common.logging import configure_logging
from payportal.common.metrics import metrics_response
from payportal.common.rate_limit import build_rate_limiters
from payportal.common.startup import ensure_store_or_exit, log_startup_config
from payportal.common.tracing import instrument_app, setup_tracing
from payportal.common.validation import normalize_iban, normalize_swift, validate_iban, validate_swift
from payportal.services.payments.schemas import IbanCheckRequest, PaymentCreateRequest, SwiftCheckRequest
from payportal.services.payments.service import PaymentService, parse_year
from payportal.store.export import CUSTOMER_CSV_COLUMNS, export_csv
from payportal.store.models import utcnow
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
        "MAX_PAYMENT_AMOUNT",
    ],
)
service = PaymentService(SessionLocal, settings.max_payment_amount, settings.service_name)
customer = require_roles(CUSTOMER)


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Refuse to serve until the payment store answers."""

    ensure_store_or_exit(settings.service_name)
    yield


app = FastAPI(title="Payment Portal Customer API", lifespan=lifespan)
app.state.rate_limiters = build_rate_limiters(settings)
install_error_handlers(app)
install_metrics_middleware(app)
instrument_app(app)


def customer_filters(
    status: str | None = None,
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
) -> PaymentFilters:
    return parse_filters(status=status, start_date=start_date, end_date=end_date)


@app.get("/health")
def health():
    """Container health probe endpoint."""

    return {"ok": True}


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@app.post("/api/payments", status_code=201, dependencies=[Depends(rate_limited("payment"))])
def create_payment(req: PaymentCreateRequest, principal: Principal = Depends(customer)):
    payment = service.create_payment(principal, req)
    return envelope("Payment created successfully.", {"payment": payment})


@app.get("/api/payments", dependencies=[Depends(rate_limited("general"))])
def list_payments(
    page: str | None = None,
    limit: str | None = None,
    filters: PaymentFilters = Depends(customer_filters),
    principal: Principal = Depends(customer),
):
    """List the caller's own payments, newest first."""

    page_value, limit_value = parse_pagination(page, limit)
    items, total = service.list_own_payments(principal, page_value, limit_value, filters)
    return paginated("Payments retrieved successfully.", items, page_value, limit_value, total)


@app.get("/api/payments/stats", dependencies=[Depends(rate_limited("general"))])
def payment_stats(principal: Principal = Depends(customer)):
    return envelope("Payment statistics retrieved successfully.", service.own_stats(principal))


@app.get("/api/payments/{payment_id}", dependencies=[Depends(rate_limited("general"))])
def get_payment(payment_id: str, principal: Principal = Depends(customer)):
    payment = service.get_own_payment(principal, payment_id)
    return envelope("Payment retrieved successfully.", {"payment": payment})


@app.put("/api/payments/{payment_id}/cancel", dependencies=[Depends(rate_limited("payment"))])
def cancel_payment(payment_id: str, principal: Principal = Depends(customer)):
    """Cancel one of the caller's pending payments."""

    payment = service.cancel_own_payment(principal, payment_id)
    return envelope("Payment cancelled successfully.", {"payment": payment})


@app.get("/api/transactions", dependencies=[Depends(rate_limited("general"))])
def transaction_history(
    page: str | None = None,
    limit: str | None = None,
    filters: PaymentFilters = Depends(customer_filters),
    principal: Principal = Depends(customer),
):
    """The caller's payments with totals over every matching one, not just the page."""

    page_value, limit_value = parse_pagination(page, limit)
    items, total = service.list_own_payments(principal, page_value, limit_value, filters)
    data = {"transactions": items, "summary": service.history_summary(principal, filters)}
    return paginated("Transaction history retrieved successfully.", data, page_value, limit_value, total)


@app.get("/api/transactions/export", dependencies=[Depends(rate_limited("general"))])
def export_transactions(filters: PaymentFilters = Depends(customer_filters), principal: Principal = Depends(customer)):
    body = export_csv(service.export_own_payments(principal, filters), CUSTOMER_CSV_COLUMNS)
    filename = f"transactions_{utcnow().date().isoformat()}.csv"
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/transactions/monthly-summary", dependencies=[Depends(rate_limited("general"))])
def monthly_summary(year: str | None = None, principal: Principal = Depends(customer)):
    summary = service.own_monthly_summary(principal, parse_year(year))
    return envelope("Monthly summary retrieved successfully.", summary)


@app.get("/api/transactions/{payment_id}", dependencies=[Depends(rate_limited("general"))])
def transaction_details(payment_id: str, principal: Principal = Depends(customer)):
    payment = service.get_own_payment(principal, payment_id)
    return envelope("Transaction details retrieved successfully.", {"transaction": payment})


@app.post("/api/validate/iban")
def check_iban(req: IbanCheckRequest):
    """Pre-submission IBAN check; no authentication required."""

    if not validate_iban(req.iban):
        return JSONResponse(status_code=400, content=error_body("Invalid IBAN format.", "INVALID_IBAN"))
    return envelope("IBAN is valid.", {"valid": True, "iban": normalize_iban(req.iban)})


@app.post("/api/validate/swift")
def check_swift(req: SwiftCheckRequest):
    """Pre-submission SWIFT/BIC check; no authentication required."""

    if not validate_swift(req.swift):
        return JSONResponse(status_code=400, content=error_body("Invalid SWIFT code format.", "INVALID_SWIFT"))
    return envelope("SWIFT code is valid.", {"valid": True, "swift": normalize_swift(req.swift)})
