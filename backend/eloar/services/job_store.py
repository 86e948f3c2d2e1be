from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, fields, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from threading import Lock

from eloar.core.exceptions import InvalidRunTransitionError, RunNotFoundError

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    pending = "PENDING"
    running = "RUNNING"
    completed = "COMPLETED"
    failed = "FAILED"
    cancelled = "CANCELLED"


TERMINAL_STATUSES = frozenset({RunStatus.completed, RunStatus.failed, RunStatus.cancelled})

ALLOWED_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.pending: frozenset({RunStatus.running, RunStatus.failed, RunStatus.cancelled}),
    RunStatus.running: TERMINAL_STATUSES,
    RunStatus.completed: frozenset(),
    RunStatus.failed: frozenset(),
    RunStatus.cancelled: frozenset(),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RunSnapshot:
    run_id: str
    status: RunStatus
    school_year_id: int
    grade_level_id: int
    configuration_id: int | None
    total_generations: int
    created_at: datetime
    current_generation: int = 0
    best_fitness: float | None = None
    random_seed: int | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    error_message: str | None = None
    distribution_id: int | None = None
    cancel_requested: bool = False
    warnings: tuple[str, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def progress(self) -> int:
        if self.status == RunStatus.completed:
            return 100
        if self.total_generations <= 0:
            return 0
        percent = int(self.current_generation * 100 / self.total_generations)
        return max(0, min(100, percent))

    @property
    def elapsed_seconds(self) -> float:
        if self.started_at is None:
            return 0.0
        end = self.finished_at or _utcnow()
        return max(0.0, (end - self.started_at).total_seconds())


@dataclass(frozen=True)
class CancelRequestResult:
    snapshot: RunSnapshot
    already_finished: bool


_UPDATABLE_FIELDS = frozenset(
    item.name for item in fields(RunSnapshot) if item.name not in {"run_id", "created_at"}
)


class JobStore:
    """Process-wide registry of optimization runs.

    Snapshots are immutable, so readers always get a consistent copy; the single writer
    of a run (its controller) replaces the snapshot under the store lock.
    """

    def __init__(self, *, retention_seconds: int | None = None) -> None:
        self._runs: dict[str, RunSnapshot] = {}
        self._lock = Lock()
        self._retention = timedelta(seconds=retention_seconds) if retention_seconds else None

    def create(
        self,
        *,
        school_year_id: int,
        grade_level_id: int,
        total_generations: int,
        configuration_id: int | None = None,
        random_seed: int | None = None,
    ) -> str:
        self.purge_finished()
        run_id = str(uuid.uuid4())
        snapshot = RunSnapshot(
            run_id=run_id,
            status=RunStatus.pending,
            school_year_id=school_year_id,
            grade_level_id=grade_level_id,
            configuration_id=configuration_id,
            total_generations=total_generations,
            random_seed=random_seed,
            created_at=_utcnow(),
        )
        with self._lock:
            self._runs[run_id] = snapshot
        return run_id

    def get(self, run_id: str) -> RunSnapshot:
        with self._lock:
            snapshot = self._runs.get(run_id)
        if snapshot is None:
            raise RunNotFoundError(run_id)
        return snapshot

    def update(self, run_id: str, **changes) -> RunSnapshot:
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown run fields: {', '.join(sorted(unknown))}")
        with self._lock:
            current = self._runs.get(run_id)
            if current is None:
                raise RunNotFoundError(run_id)
            updated = self._apply(current, changes)
            self._runs[run_id] = updated
        if updated.status != current.status:
            logger.info("Run %s: %s -> %s", run_id, current.status.value, updated.status.value)
        return updated

    @staticmethod
    def _apply(current: RunSnapshot, changes: dict) -> RunSnapshot:
        requested = changes.get("status", current.status)
        requested = RunStatus(requested)
        if current.is_terminal:
            raise InvalidRunTransitionError(current.run_id, current.status.value, requested.value)
        if requested != current.status and requested not in ALLOWED_TRANSITIONS[current.status]:
            raise InvalidRunTransitionError(current.run_id, current.status.value, requested.value)
        changes = dict(changes, status=requested)

        # Progress never moves backwards and the best fitness never regresses.
        generation = changes.get("current_generation")
        if generation is not None and generation < current.current_generation:
            changes["current_generation"] = current.current_generation
        best = changes.get("best_fitness")
        if best is not None and current.best_fitness is not None and best < current.best_fitness:
            changes["best_fitness"] = current.best_fitness
        if requested == RunStatus.running and current.started_at is None:
            changes.setdefault("started_at", _utcnow())
        if requested in TERMINAL_STATUSES:
            changes.setdefault("finished_at", _utcnow())
        if "warnings" in changes:
            changes["warnings"] = tuple(changes["warnings"])
        return replace(current, **changes)

    def mark_running(self, run_id: str, *, random_seed: int | None = None, warnings=()) -> RunSnapshot:
        changes = {"status": RunStatus.running, "warnings": tuple(warnings)}
        if random_seed is not None:
            changes["random_seed"] = random_seed
        return self.update(run_id, **changes)

    def record_progress(self, run_id: str, *, current_generation: int, best_fitness: float | None) -> RunSnapshot:
        return self.update(run_id, current_generation=current_generation, best_fitness=best_fitness)

    def complete(self, run_id: str, *, distribution_id: int) -> RunSnapshot:
        return self.update(run_id, status=RunStatus.completed, distribution_id=distribution_id)

    def fail(self, run_id: str, message: str) -> RunSnapshot:
        return self.update(run_id, status=RunStatus.failed, error_message=message)

    def cancel(self, run_id: str) -> RunSnapshot:
        return self.update(run_id, status=RunStatus.cancelled)

    def request_cancel(self, run_id: str) -> CancelRequestResult:
        with self._lock:
            current = self._runs.get(run_id)
            if current is None:
                raise RunNotFoundError(run_id)
            if current.is_terminal:
                return CancelRequestResult(snapshot=current, already_finished=True)
            if current.status == RunStatus.pending:
                # Queued runs have no generation to finish; they stop right away.
                updated = replace(
                    current,
                    status=RunStatus.cancelled,
                    cancel_requested=True,
                    finished_at=_utcnow(),
                )
            else:
                updated = replace(current, cancel_requested=True)
            self._runs[run_id] = updated
        if updated.status != current.status:
            logger.info("Run %s: %s -> %s", run_id, current.status.value, updated.status.value)
        elif not current.cancel_requested:
            logger.info("Run %s: cancellation requested", run_id)
        return CancelRequestResult(snapshot=updated, already_finished=False)

    def is_cancel_requested(self, run_id: str) -> bool:
        return self.get(run_id).cancel_requested

    def active_run_ids(self) -> list[str]:
        with self._lock:
            return [run_id for run_id, snapshot in self._runs.items() if not snapshot.is_terminal]

    def purge_finished(self, *, now: datetime | None = None) -> int:
        if self._retention is None:
            return 0
        cutoff = (now or _utcnow()) - self._retention
        with self._lock:
            expired = [
                run_id
                for run_id, snapshot in self._runs.items()
                if snapshot.is_terminal and snapshot.finished_at is not None and snapshot.finished_at < cutoff
            ]
            for run_id in expired:
                del self._runs[run_id]
        if expired:
            logger.debug("Purged %s finished runs from the job store", len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._runs.clear()
