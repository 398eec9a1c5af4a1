from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal

from tradequote.services.pipeline.types import Job, JobStatus, PipelineBoard, PipelineColumn

BOARD_COLUMNS: tuple[tuple[JobStatus, str], ...] = (
    (JobStatus.QUOTED, "Quoted"),
    (JobStatus.APPROVED, "Approved"),
    (JobStatus.SCHEDULED, "Scheduled"),
    (JobStatus.IN_PROGRESS, "In Progress"),
    (JobStatus.COMPLETED, "Completed"),
)


def format_currency(amount: Decimal | int | float | None) -> str:
    if amount is None:
        return "$0"
    value = Decimal(str(amount))
    if value == value.to_integral_value():
        return f"${value:,.0f}"
    return f"${value:,.2f}"


def format_local_date(value: date | datetime | str | None) -> str | None:
    """Render a calendar date as M/D/YYYY, dropping any time-of-day."""
    if value is None:
        return None
    if isinstance(value, str):
        value = date.fromisoformat(value[:10])
    elif isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        value = value.date()
    return f"{value.month}/{value.day}/{value.year}"


def total_value(jobs: Iterable[Job]) -> Decimal:
    return sum((job.total_amount or Decimal("0") for job in jobs), Decimal("0"))


def build_board(jobs: list[Job], grouped: dict[JobStatus, list[Job]]) -> PipelineBoard:
    columns = tuple(
        PipelineColumn(status=status, title=title, jobs=tuple(grouped.get(status, [])))
        for status, title in BOARD_COLUMNS
    )
    return PipelineBoard(columns=columns, total_jobs=len(jobs), total_value=total_value(jobs))
