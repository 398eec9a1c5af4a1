from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import replace

from tradequote.services.pipeline.board import BOARD_COLUMNS, build_board
from tradequote.services.pipeline.store import JobStore, JobStoreError
from tradequote.services.pipeline.transitions import TransitionPolicy
from tradequote.services.pipeline.types import Job, JobStatus, PipelineBoard

HIDDEN_STATUSES = frozenset({JobStatus.CANCELLED})


class JobPipelineController:
    """Local job cache for the status board with optimistic transitions.

    A transition is written into the cache immediately and persisted in the
    background. If persisting fails the whole cache is thrown away and reloaded
    from the store, so any other local change made meanwhile is lost too.

    All methods must be called from the event loop thread.
    """

    def __init__(
        self,
        store: JobStore,
        *,
        policy: TransitionPolicy | None = None,
        update_timeout_seconds: float | None = None,
    ) -> None:
        self._store = store
        self._policy = policy or TransitionPolicy.permissive()
        self._update_timeout_seconds = update_timeout_seconds
        self._jobs: list[Job] = []
        self._loaded = False
        self._loads_started = 0
        self._loads_finished = 0
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def jobs(self) -> tuple[Job, ...]:
        return tuple(self._jobs)

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def get_job(self, job_id: str) -> Job | None:
        for job in self._jobs:
            if job.id == job_id:
                return job
        return None

    async def load(self) -> list[Job]:
        self._loads_started += 1
        ticket = self._loads_started
        try:
            jobs = await self._store.list_jobs()
        except JobStoreError as exc:
            print(f"[pipeline] load failed error={exc}", flush=True)
            jobs = []
        finally:
            self._loads_finished += 1

        visible = [job for job in jobs if job.status not in HIDDEN_STATUSES]
        if ticket != self._loads_started:
            # a newer load is running and owns the cache
            print(f"[pipeline] load superseded jobs={len(visible)}", flush=True)
            return visible

        self._jobs = visible
        self._loaded = True
        print(f"[pipeline] loaded jobs={len(self._jobs)}", flush=True)
        return list(self._jobs)

    def group_by_status(self, statuses: Iterable[JobStatus | str]) -> dict[JobStatus, list[Job]]:
        groups: dict[JobStatus, list[Job]] = {JobStatus(status): [] for status in statuses}
        for job in self._jobs:
            bucket = groups.get(job.status)
            if bucket is not None:
                bucket.append(job)
        return groups

    def board(self) -> PipelineBoard:
        grouped = self.group_by_status(status for status, _ in BOARD_COLUMNS)
        return build_board(self._jobs, grouped)

    def request_transition(
        self,
        job_id: str,
        target_status: JobStatus | str,
    ) -> asyncio.Task[None] | None:
        """Move a job to ``target_status`` and persist it in the background.

        Returns the persistence task, or None when nothing was changed: the
        job is not cached, it already has that status, or the policy rejects
        the move.
        """
        target = JobStatus(target_status)
        loop = asyncio.get_running_loop()

        index = self._index_of(job_id)
        if index is None:
            return None

        current = self._jobs[index]
        if current.status == target:
            return None

        if not self._policy.allows(current.status, target):
            print(
                f"[pipeline] transition rejected job_id={job_id} "
                f"from={current.status.value} to={target.value}",
                flush=True,
            )
            return None

        self._jobs[index] = replace(current, status=target)

        task = loop.create_task(
            self._persist(
                job_id,
                current.status,
                target,
                (self._loads_started, self._loads_finished),
            )
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def wait_for_pending(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        pending = list(self._pending)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _index_of(self, job_id: str) -> int | None:
        for index, job in enumerate(self._jobs):
            if job.id == job_id:
                return index
        return None

    async def _persist(
        self,
        job_id: str,
        source: JobStatus,
        target: JobStatus,
        loads_at_issue: tuple[int, int],
    ) -> None:
        update = self._store.update_job_status(job_id, target)
        try:
            if self._update_timeout_seconds is None:
                await update
            else:
                await asyncio.wait_for(update, self._update_timeout_seconds)
        except asyncio.TimeoutError:
            print(
                f"[pipeline] transition timed out job_id={job_id} "
                f"after={self._update_timeout_seconds:.1f}s; reloading",
                flush=True,
            )
            await self._resync()
            return
        except Exception as exc:
            print(
                f"[pipeline] transition failed job_id={job_id} "
                f"from={source.value} to={target.value} error={exc!r}; reloading",
                flush=True,
            )
            await self._resync()
            return

        print(
            f"[pipeline] transition persisted job_id={job_id} from={source.value} to={target.value}",
            flush=True,
        )

        # a load that overlapped this update may hold a snapshot taken before it
        if self._load_overlapped(loads_at_issue):
            await self._resync()

    def _load_overlapped(self, loads_at_issue: tuple[int, int]) -> bool:
        started, finished = loads_at_issue
        return (
            self._loads_started != started
            or self._loads_finished != finished
            or self._loads_started != self._loads_finished
        )

    async def _resync(self) -> None:
        self._jobs = []
        await self.load()
