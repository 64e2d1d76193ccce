"""Aggregate views over the payment store for the review dashboard.

Counts and sums are grouped in SQL; anything that depends on elapsed time
(handling time, age buckets, per-day grouping) is computed here from UTC
timestamps so results do not depend on the database's date functions.
"""

from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from payportal.common.state_machine import OPEN_STATUSES
from payportal.store.models import Payment, as_utc

# (label, lower bound in hours); the last bucket is open-ended.
AGE_BUCKETS: tuple[tuple[str, int], ...] = (
    ("0-24h", 0),
    ("24-48h", 24),
    ("48-72h", 48),
    ("72h-7d", 72),
    ("7d-14d", 168),
    (">=14d", 336),
)
TOP_REASONS_LIMIT = 5


def age_bucket(age_hours: float) -> str:
    label = AGE_BUCKETS[0][0]
    for name, lower in AGE_BUCKETS:
        if age_hours >= lower:
            label = name
    return label


def global_stats(db: Session, now: datetime) -> dict[str, Any]:
    """Status breakdown, average handling time and age buckets of live payments."""

    live = Payment.deleted_at.is_(None)
    breakdown = [
        {"status": status, "count": int(count), "totalAmount": float(total or 0)}
        for status, count, total in db.execute(
            select(Payment.status, func.count(Payment.id), func.sum(Payment.amount))
            .where(live)
            .group_by(Payment.status)
            .order_by(Payment.status)
        ).all()
    ]

    durations: dict[str, list[float]] = defaultdict(list)
    for status, created_at, processed_at in db.execute(
        select(Payment.status, Payment.created_at, Payment.processed_at).where(
            live, Payment.processed_at.is_not(None)
        )
    ).all():
        elapsed = as_utc(processed_at) - as_utc(created_at)
        durations[status].append(elapsed.total_seconds() * 1000)
    handling = [
        {"status": status, "avgMs": sum(values) / len(values)} for status, values in sorted(durations.items())
    ]

    counts: Counter[str] = Counter()
    for created_at in db.execute(select(Payment.created_at).where(live)).scalars():
        age_hours = (now - as_utc(created_at)).total_seconds() / 3600
        counts[age_bucket(age_hours)] += 1
    age_buckets = [{"bucket": name, "count": counts.get(name, 0)} for name, _ in AGE_BUCKETS]

    return {"breakdown": breakdown, "handling": handling, "ageBuckets": age_buckets}


def daily_trends(db: Session) -> dict[str, Any]:
    """Per-day creation counts, status distribution and the most used reason codes."""

    live = Payment.deleted_at.is_(None)
    per_day: Counter[str] = Counter(
        as_utc(created_at).date().isoformat()
        for created_at in db.execute(select(Payment.created_at).where(live)).scalars()
    )
    daily = [{"date": day, "count": count} for day, count in sorted(per_day.items())]

    completion_rate = [
        {"status": status, "count": int(count)}
        for status, count in db.execute(
            select(Payment.status, func.count(Payment.id)).where(live).group_by(Payment.status).order_by(Payment.status)
        ).all()
    ]

    reason_count = func.count(Payment.id).label("reason_count")
    top_reasons = [
        {"reasonCode": code, "count": int(count)}
        for code, count in db.execute(
            select(Payment.reason_code, reason_count)
            .where(live, Payment.reason_code.is_not(None))
            .group_by(Payment.reason_code)
            .order_by(reason_count.desc(), Payment.reason_code)
            .limit(TOP_REASONS_LIMIT)
        ).all()
    ]
    return {"daily": daily, "completionRate": completion_rate, "topReasons": top_reasons}


def queue_health(db: Session, now: datetime, at_risk_hours: int = 24, stale_hours: int = 48) -> dict[str, int]:
    """Open payments past the stale threshold, and those between the at-risk and stale thresholds."""

    stale_cutoff = now - timedelta(hours=stale_hours)
    at_risk_cutoff = now - timedelta(hours=at_risk_hours)
    open_live = (Payment.deleted_at.is_(None), Payment.status.in_(sorted(OPEN_STATUSES)))
    stale = db.execute(
        select(func.count(Payment.id)).where(*open_live, Payment.created_at < stale_cutoff)
    ).scalar_one()
    at_risk = db.execute(
        select(func.count(Payment.id)).where(
            *open_live,
            Payment.created_at < at_risk_cutoff,
            Payment.created_at >= stale_cutoff,
        )
    ).scalar_one()
    return {"stale": int(stale), "atRisk": int(at_risk)}
