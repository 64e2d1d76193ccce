"""Database bootstrap helpers shared by both services."""

import time

from sqlalchemy import create_engine, text
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from payportal.common.config import settings
from payportal.common.logging import logger


# Single SQLAlchemy engine per process.
engine = create_engine(settings.database_dsn, pool_pre_ping=True)
# `expire_on_commit=False` keeps ORM objects readable after commit in handlers.
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


class Base(DeclarativeBase):
    """Declarative base for SQLAlchemy models."""

    pass


def wait_for_database(retries: int | None = None, delay_seconds: float = 1.0) -> None:
    """Ping the store until it answers; re-raise the last error when retries run out."""

    retries = retries or settings.db_connect_retries
    for attempt in range(1, retries + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return
        except Exception as exc:
            logger.warning("database ping retry=%s/%s error=%s", attempt, retries, exc)
            if attempt == retries:
                raise
            time.sleep(delay_seconds)
