from __future__ import annotations

from typing import Protocol

from tradequote.services.pipeline.types import Job, JobStatus


class JobStoreError(RuntimeError):
    pass


class JobStore(Protocol):
    """Authoritative source of jobs behind the pipeline board."""

    async def list_jobs(self) -> list[Job]: ...

    async def update_job_status(self, job_id: str, status: JobStatus) -> None: ...
