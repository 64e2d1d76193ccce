"""HTTP plumbing shared by the FastAPI apps.

Covers the response envelope, mapping of `PortalError` to status codes,
request metrics, and the per-route rate-limit and step-up dependencies.
"""

from datetime import datetime, timezone
from math import ceil
from time import perf_counter
from typing import Any, Callable
from uuid import uuid4

from fastapi import Depends, FastAPI, Header, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from payportal.common.auth import Principal, get_principal
from payportal.common.config import settings
from payportal.common.errors import PortalError, RateLimited, ValidationFailed
from payportal.common.logging import bind_request, logger
from payportal.common.metrics import http_request_duration_seconds, http_requests_total
from payportal.common.tracing import current_trace_id


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def envelope(message: str, data: Any = None) -> dict[str, Any]:
    """Successful response body: `{success, message, data?, timestamp}`."""

    body: dict[str, Any] = {"success": True, "message": message, "timestamp": utc_timestamp()}
    if data is not None:
        body["data"] = jsonable_encoder(data, by_alias=True)
    return body


def paginated(message: str, items: list[Any] | dict[str, Any], page: int, limit: int, total: int) -> dict[str, Any]:
    body = envelope(message, items)
    body["pagination"] = {"page": page, "limit": limit, "total": total, "pages": ceil(total / limit) if limit else 0}
    return body


def error_body(message: str, code: str) -> dict[str, Any]:
    return {"success": False, "message": message, "error": code, "timestamp": utc_timestamp()}


async def portal_error_handler(_: Request, exc: PortalError) -> JSONResponse:
    body = error_body(exc.message, exc.code)
    if isinstance(exc, ValidationFailed):
        body["errors"] = exc.errors
    headers = None
    if isinstance(exc, RateLimited) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


async def request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(part) for part in err.get("loc", ())[1:]) or "body", "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    body = error_body("Validation failed.", ValidationFailed.code)
    body["errors"] = errors
    return JSONResponse(status_code=400, content=body)


async def http_error_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = "API endpoint not found" if exc.status_code == 404 else str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content=error_body(message, f"HTTP_{exc.status_code}"))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error path=%s error=%s", request.url.path, exc)
    return JSONResponse(status_code=500, content=error_body("Internal server error.", "INTERNAL_ERROR"))


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PortalError, portal_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)


def install_metrics_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Bind a trace id and record request count and latency for every HTTP call."""

        trace_id = request.headers.get("x-trace-id") or current_trace_id() or uuid4().hex
        bind_request(trace_id)
        start = perf_counter()
        route = request.url.path
        method = request.method
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["x-trace-id"] = trace_id
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=settings.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=settings.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()


def rate_limited(category: str) -> Callable[..., None]:
    """Dependency charging one request to `category`, keyed by the caller's email."""

    def dependency(request: Request, principal: Principal = Depends(get_principal)) -> None:
        limiter = request.app.state.rate_limiters[category]
        limiter.check(principal.email or principal.user_id)

    return dependency


def step_up_confirmed(x_action_confirm: str | None = Header(default=None)) -> bool:
    """True only when the caller sent `x-action-confirm: true`."""

    return str(x_action_confirm or "").strip().lower() == "true"
