"""Startup-time helpers for safe config logging and store readiness."""

import os
import sys

from payportal.common.db import wait_for_database
from payportal.common.logging import logger


def _safe_env(name: str) -> str:
    """Return env value with simple redaction for secret-like variable names."""

    value = os.getenv(name)
    if value is None:
        return "<unset>"
    if any(secret in name for secret in ["KEY", "SECRET", "PASSWORD", "TOKEN", "DSN"]):
        return "<redacted>"
    return value


def log_startup_config(service_name: str, keys: list[str]) -> None:
    """Log selected startup config keys for quick troubleshooting."""

    config = {"service": service_name}
    for key in keys:
        config[key] = _safe_env(key)
    logger.info("startup_config=%s", config)


def ensure_store_or_exit(service_name: str) -> None:
    """Block until the store answers; an unreachable store is fatal for the process."""

    try:
        wait_for_database()
    except Exception as exc:
        logger.critical("store unreachable service=%s error=%s", service_name, exc)
        sys.exit(1)
    logger.info("store reachable service=%s", service_name)
