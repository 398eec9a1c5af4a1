from __future__ import annotations

from collections.abc import Mapping

from tradequote.services.pipeline.types import TERMINAL_STATUSES, JobStatus

PROGRESSION: tuple[JobStatus, ...] = (
    JobStatus.QUOTED,
    JobStatus.APPROVED,
    JobStatus.SCHEDULED,
    JobStatus.IN_PROGRESS,
    JobStatus.COMPLETED,
)


class TransitionPolicy:
    """Decides which status changes the board accepts.

    A policy without a table accepts every source/target pair, which is how
    the board has always behaved.
    """

    def __init__(self, allowed: Mapping[JobStatus, frozenset[JobStatus]] | None = None) -> None:
        self._allowed = dict(allowed) if allowed is not None else None

    @classmethod
    def permissive(cls) -> TransitionPolicy:
        return cls()

    @classmethod
    def progression(cls) -> TransitionPolicy:
        allowed: dict[JobStatus, frozenset[JobStatus]] = {}
        for index, status in enumerate(PROGRESSION):
            targets: set[JobStatus] = set()
            if index + 1 < len(PROGRESSION):
                targets.add(PROGRESSION[index + 1])
            if status not in TERMINAL_STATUSES:
                targets.add(JobStatus.CANCELLED)
            allowed[status] = frozenset(targets)
        allowed[JobStatus.CANCELLED] = frozenset()
        return cls(allowed)

    @property
    def is_permissive(self) -> bool:
        return self._allowed is None

    def allows(self, source: JobStatus, target: JobStatus) -> bool:
        if self._allowed is None:
            return True
        return target in self._allowed.get(source, frozenset())
