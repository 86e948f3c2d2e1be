from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from functools import lru_cache
from threading import Lock
from typing import Callable

from sqlalchemy.orm import Session

from eloar.core.config import get_settings
from eloar.db.session import SessionLocal
from eloar.engine.controller import OptimizationRunController
from eloar.schemas.optimization import StartOptimizationRequest
from eloar.services.job_store import CancelRequestResult, JobStore, RunSnapshot
from eloar.services.materializer import ResultMaterializer
from eloar.services.problem_loader import (
    ensure_scope_exists,
    load_problem,
    resolve_optimizer_settings,
    resolve_weights,
)

logger = logging.getLogger(__name__)


class OptimizationService:
    """Entry point for starting, polling and cancelling optimization runs.

    Input data is snapshotted on the request thread; workers only run the search and write the
    result through the materializer. Runs beyond ``max_workers`` wait in the executor as PENDING.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        job_store: JobStore | None = None,
        max_workers: int = 2,
    ) -> None:
        self.session_factory = session_factory
        self.job_store = job_store or JobStore()
        self.max_workers = max_workers
        self.materializer = ResultMaterializer(session_factory)
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = Lock()
        self._futures: dict[str, Future] = {}

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix="optimizer",
                )
            return self._executor

    def start(self, db: Session, request: StartOptimizationRequest) -> RunSnapshot:
        ensure_scope_exists(db, school_year_id=request.school_year_id, grade_level_id=request.grade_level_id)
        configuration_id, weights = resolve_weights(db, request.configuration_id)
        settings = resolve_optimizer_settings(db, request.settings_override)
        problem = load_problem(
            db,
            school_year_id=request.school_year_id,
            grade_level_id=request.grade_level_id,
            weights=weights,
        )

        run_id = self.job_store.create(
            school_year_id=request.school_year_id,
            grade_level_id=request.grade_level_id,
            total_generations=settings.total_generations,
            configuration_id=configuration_id,
            random_seed=settings.random_seed,
        )
        controller = OptimizationRunController(
            run_id=run_id,
            problem=problem,
            settings=settings,
            job_store=self.job_store,
            materializer=self.materializer,
            configuration_id=configuration_id,
        )
        logger.info(
            "Run %s queued year=%s grade=%s students=%s classes=%s configuration=%s",
            run_id,
            request.school_year_id,
            request.grade_level_id,
            len(problem.students),
            len(problem.slots),
            configuration_id,
        )
        queued = self.job_store.get(run_id)
        future = self._get_executor().submit(self._execute, controller)
        with self._executor_lock:
            self._futures[run_id] = future
        # Registered outside the lock: an already finished future runs the callback inline.
        future.add_done_callback(lambda _: self._forget(run_id))
        return queued

    def _forget(self, run_id: str) -> None:
        with self._executor_lock:
            self._futures.pop(run_id, None)

    def _execute(self, controller: OptimizationRunController) -> None:
        try:
            controller.run()
        except Exception:
            # The controller records its own failures; this only guards the job store itself.
            logger.exception("Run %s worker crashed", controller.run_id)

    def status(self, run_id: str) -> RunSnapshot:
        return self.job_store.get(run_id)

    def cancel(self, run_id: str) -> CancelRequestResult:
        return self.job_store.request_cancel(run_id)

    def wait(self, run_id: str, timeout: float | None = None) -> RunSnapshot:
        with self._executor_lock:
            future = self._futures.get(run_id)
        if future is not None:
            future.result(timeout=timeout)
        return self.job_store.get(run_id)

    def shutdown(self, *, wait: bool = True) -> None:
        active = self.job_store.active_run_ids()
        for run_id in active:
            self.job_store.request_cancel(run_id)
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            logger.info("Stopping optimizer pool, cancelling %s active runs", len(active))
            executor.shutdown(wait=wait)


@lru_cache
def get_optimization_service() -> OptimizationService:
    settings = get_settings()
    return OptimizationService(
        SessionLocal,
        job_store=JobStore(retention_seconds=settings.optimizer_run_retention_seconds),
        max_workers=settings.optimizer_max_workers,
    )
