from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class JobStatus(str, Enum):
    QUOTED = "quoted"
    APPROVED = "approved"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.CANCELLED})


@dataclass(frozen=True)
class Job:
    id: str
    title: str
    status: JobStatus
    total_amount: Decimal | None = None
    scheduled_date: date | None = None
    client_id: str | None = None
    client_name: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class PipelineColumn:
    status: JobStatus
    title: str
    jobs: tuple[Job, ...] = field(default_factory=tuple)

    @property
    def count(self) -> int:
        return len(self.jobs)


@dataclass(frozen=True)
class PipelineBoard:
    columns: tuple[PipelineColumn, ...]
    total_jobs: int
    total_value: Decimal
