from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from tradequote.services.pipeline.types import Job, JobStatus
from tradequote.services.quotes import QuoteStatus

EXPIRING_WINDOW_DAYS = 3
ACTIVE_STATUSES = frozenset({JobStatus.SCHEDULED, JobStatus.IN_PROGRESS})


@dataclass(frozen=True)
class QuoteSummary:
    total: Decimal | None
    status: str
    created_at: datetime
    valid_until: date | None = None


@dataclass(frozen=True)
class DashboardStats:
    revenue_this_month: Decimal
    revenue_last_month: Decimal
    revenue_change_pct: float
    jobs_in_progress: int
    jobs_today: int
    unscheduled_jobs: int
    quotes_expiring: int


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _month_start(value: datetime) -> datetime:
    return value.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _previous_month_start(value: datetime) -> datetime:
    return _month_start(_month_start(value) - timedelta(days=1))


def _accepted_revenue(quotes: Sequence[QuoteSummary], start: datetime, end: datetime | None) -> Decimal:
    revenue = Decimal("0")
    for quote in quotes:
        if quote.status != QuoteStatus.ACCEPTED.value:
            continue
        created_at = _to_utc(quote.created_at)
        if created_at < start or (end is not None and created_at >= end):
            continue
        revenue += quote.total or Decimal("0")
    return revenue


def revenue_change_pct(this_month: Decimal, last_month: Decimal) -> float:
    if last_month <= 0:
        return 0.0
    return round(float((this_month - last_month) / last_month * 100), 1)


def compute_dashboard_stats(
    jobs: Sequence[Job],
    quotes: Sequence[QuoteSummary],
    *,
    now: datetime,
) -> DashboardStats:
    now = _to_utc(now)
    today = now.date()
    this_month_start = _month_start(now)
    last_month_start = _previous_month_start(now)

    revenue_this_month = _accepted_revenue(quotes, this_month_start, None)
    revenue_last_month = _accepted_revenue(quotes, last_month_start, this_month_start)

    expiring_until = today + timedelta(days=EXPIRING_WINDOW_DAYS)
    quotes_expiring = sum(
        1
        for quote in quotes
        if quote.status == QuoteStatus.SENT.value
        and quote.valid_until is not None
        and today < quote.valid_until <= expiring_until
    )

    return DashboardStats(
        revenue_this_month=revenue_this_month,
        revenue_last_month=revenue_last_month,
        revenue_change_pct=revenue_change_pct(revenue_this_month, revenue_last_month),
        jobs_in_progress=sum(1 for job in jobs if job.status in ACTIVE_STATUSES),
        jobs_today=sum(1 for job in jobs if job.scheduled_date == today),
        unscheduled_jobs=sum(
            1 for job in jobs if job.status == JobStatus.APPROVED and job.scheduled_date is None
        ),
        quotes_expiring=quotes_expiring,
    )
