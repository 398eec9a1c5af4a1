from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from tradequote.db import get_engine
from tradequote.models import JobRecord, QuoteRecord
from tradequote.services.dashboard import QuoteSummary, compute_dashboard_stats, revenue_change_pct
from tradequote.services.pipeline import Job, JobStatus

NOW = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)


def _job(job_id: str, status: JobStatus, scheduled: date | None = None) -> Job:
    return Job(id=job_id, title=job_id, status=status, scheduled_date=scheduled)


def _quote(total: str, status: str, created_at: datetime, valid_until: date | None = None) -> QuoteSummary:
    return QuoteSummary(
        total=Decimal(total),
        status=status,
        created_at=created_at,
        valid_until=valid_until,
    )


def test_revenue_counts_accepted_quotes_by_calendar_month() -> None:
    quotes = [
        _quote("1000", "accepted", datetime(2026, 10, 1, 0, 0, tzinfo=timezone.utc)),
        _quote("250", "accepted", datetime(2026, 10, 18, 9, 0)),
        _quote("9999", "sent", datetime(2026, 10, 5, 9, 0, tzinfo=timezone.utc)),
        _quote("800", "accepted", datetime(2026, 9, 30, 23, 30, tzinfo=timezone.utc)),
        _quote("200", "accepted", datetime(2026, 9, 1, 0, 0, tzinfo=timezone.utc)),
        _quote("5000", "accepted", datetime(2026, 8, 31, 12, 0, tzinfo=timezone.utc)),
    ]

    stats = compute_dashboard_stats([], quotes, now=NOW)

    assert stats.revenue_this_month == Decimal("1250")
    assert stats.revenue_last_month == Decimal("1000")
    assert stats.revenue_change_pct == 25.0


def test_revenue_change_is_zero_without_last_month_revenue() -> None:
    assert revenue_change_pct(Decimal("500"), Decimal("0")) == 0.0
    assert revenue_change_pct(Decimal("50"), Decimal("100")) == -50.0


def test_revenue_window_wraps_across_year_boundary() -> None:
    quotes = [
        _quote("300", "accepted", datetime(2025, 12, 15, tzinfo=timezone.utc)),
        _quote("100", "accepted", datetime(2026, 1, 2, tzinfo=timezone.utc)),
    ]

    stats = compute_dashboard_stats([], quotes, now=datetime(2026, 1, 10, tzinfo=timezone.utc))

    assert stats.revenue_this_month == Decimal("100")
    assert stats.revenue_last_month == Decimal("300")


def test_job_counters() -> None:
    today = NOW.date()
    jobs = [
        _job("1", JobStatus.SCHEDULED, today),
        _job("2", JobStatus.IN_PROGRESS, today - timedelta(days=1)),
        _job("3", JobStatus.APPROVED),
        _job("4", JobStatus.APPROVED, today + timedelta(days=2)),
        _job("5", JobStatus.COMPLETED, today),
        _job("6", JobStatus.QUOTED),
    ]

    stats = compute_dashboard_stats(jobs, [], now=NOW)

    assert stats.jobs_in_progress == 2
    assert stats.jobs_today == 2
    assert stats.unscheduled_jobs == 1


def test_quotes_expiring_within_three_days() -> None:
    today = NOW.date()
    created = NOW - timedelta(days=20)
    quotes = [
        _quote("10", "sent", created, today + timedelta(days=1)),
        _quote("10", "sent", created, today + timedelta(days=3)),
        _quote("10", "sent", created, today + timedelta(days=4)),
        _quote("10", "sent", created, today),
        _quote("10", "draft", created, today + timedelta(days=1)),
        _quote("10", "sent", created, None),
    ]

    stats = compute_dashboard_stats([], quotes, now=NOW)

    assert stats.quotes_expiring == 2


def test_dashboard_stats_endpoint(client: TestClient) -> None:
    now = datetime.now(timezone.utc)
    with Session(get_engine()) as session:
        session.add_all(
            [
                JobRecord(id="j-1", title="Active", status="in_progress"),
                JobRecord(id="j-2", title="Waiting", status="approved"),
                JobRecord(id="j-3", title="Today", status="scheduled", scheduled_date=now.date()),
            ]
        )
        session.add(
            QuoteRecord(
                id="1",
                job_id="j-1",
                quote_number="Q202610-001",
                line_items=[],
                subtotal=Decimal("1000"),
                tax=Decimal("100"),
                total=Decimal("1100"),
                status="accepted",
                created_at=now,
            )
        )
        session.commit()

    response = client.get("/dashboard/stats")

    assert response.status_code == 200
    body = response.json()
    assert body["revenue_this_month"] == "1100.00"
    assert body["revenue_this_month_display"] == "$1,100"
    assert body["jobs_in_progress"] == 2
    assert body["jobs_today"] == 1
    assert body["unscheduled_jobs"] == 1
    assert body["quotes_expiring"] == 0
