"""JSON logs carrying the caller and payment each line is about.

The middleware binds a trace id per request, auth binds the caller, and the
services bind the payment they are working on. Every record picks them up.
"""

import logging
import sys
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from payportal.common.config import settings


trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")
user_id_ctx: ContextVar[str] = ContextVar("user_id", default="")
role_ctx: ContextVar[str] = ContextVar("role", default="")
payment_id_ctx: ContextVar[str] = ContextVar("payment_id", default="")

LOG_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s %(service_name)s %(trace_id)s %(user_id)s %(role)s %(payment_id)s %(message)s"
)


def bind_request(trace_id: str) -> None:
    """Start a fresh request context; identities are bound later by auth."""

    trace_id_ctx.set(trace_id)
    user_id_ctx.set("")
    role_ctx.set("")
    payment_id_ctx.set("")


def bind_caller(user_id: str, role: str) -> None:
    user_id_ctx.set(user_id)
    role_ctx.set(role)


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = settings.service_name
        record.trace_id = trace_id_ctx.get()
        record.user_id = user_id_ctx.get()
        record.role = role_ctx.get()
        record.payment_id = payment_id_ctx.get()
        return True


def configure_logging(level: str | None = None) -> None:
    """Route every logger through one stdout JSON handler.

    Safe to call from each app module; the handler is replaced, not stacked.
    """

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ContextFilter())
    handler.setFormatter(JsonFormatter(LOG_FORMAT, rename_fields={"asctime": "timestamp", "levelname": "level"}))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel((level or settings.log_level).upper())
    # Request lines are already counted and timed by the metrics middleware.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


logger = logging.getLogger("payportal")
