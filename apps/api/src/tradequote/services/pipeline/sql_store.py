from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from tradequote.models import JobRecord
from tradequote.services.pipeline.store import JobStoreError
from tradequote.services.pipeline.types import Job, JobStatus


def job_from_record(record: JobRecord) -> Job:
    try:
        status = JobStatus(record.status)
    except ValueError as exc:
        raise JobStoreError(f"job {record.id} has unknown status {record.status!r}") from exc

    return Job(
        id=record.id,
        title=record.title,
        status=status,
        total_amount=record.total_amount,
        scheduled_date=record.scheduled_date,
        client_id=record.client_id,
        client_name=record.client.name if record.client is not None else None,
        created_at=record.created_at,
    )


class SqlJobStore:
    """JobStore backed by the service's own database.

    Session work is blocking, so each call runs in a worker thread to keep the
    event loop free for other transitions.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    async def list_jobs(self) -> list[Job]:
        return await asyncio.to_thread(self._list_jobs)

    async def update_job_status(self, job_id: str, status: JobStatus) -> None:
        await asyncio.to_thread(self._update_job_status, job_id, JobStatus(status))

    def _list_jobs(self) -> list[Job]:
        try:
            with Session(self._engine) as session:
                records = session.scalars(
                    select(JobRecord)
                    .options(joinedload(JobRecord.client))
                    .order_by(JobRecord.created_at.desc(), JobRecord.id.desc())
                ).all()
                return [job_from_record(record) for record in records]
        except SQLAlchemyError as exc:
            raise JobStoreError(f"failed to list jobs: {exc}") from exc

    def _update_job_status(self, job_id: str, status: JobStatus) -> None:
        try:
            with Session(self._engine) as session:
                result = session.execute(
                    update(JobRecord)
                    .where(JobRecord.id == job_id)
                    .values(status=status.value, updated_at=datetime.now(timezone.utc))
                )
                if result.rowcount != 1:
                    session.rollback()
                    raise JobStoreError(f"job not found: {job_id}")
                session.commit()
        except SQLAlchemyError as exc:
            raise JobStoreError(f"failed to update job {job_id}: {exc}") from exc
