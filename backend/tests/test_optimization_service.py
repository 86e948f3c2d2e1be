import time
from threading import Event, Timer

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from eloar.db.base import Base
from eloar.engine.controller import OptimizationRunController
from eloar.models.distribution import Distribution, DistributionAssignment
from eloar.schemas.optimization import OptimizerSettings, StartOptimizationRequest
from eloar.services.job_store import JobStore, RunStatus
from eloar.services.optimization import OptimizationService


@pytest.fixture()
def session_factory(tmp_path):
    # File-backed so concurrent workers each get their own connection.
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'runs.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def request_for(cohort: dict, **settings) -> StartOptimizationRequest:
    values = {"population_size": 10, "total_generations": 10, "random_seed": 4, **settings}
    return StartOptimizationRequest(
        school_year_id=cohort["school_year_id"],
        grade_level_id=cohort["grade_level_id"],
        settings_override=OptimizerSettings(**values),
    )


def gate_runs(monkeypatch) -> Event:
    release = Event()
    original_run = OptimizationRunController.run

    def gated_run(self):
        release.wait(timeout=30)
        return original_run(self)

    monkeypatch.setattr(OptimizationRunController, "run", gated_run)
    return release


def test_queued_run_cancelled_before_its_worker_starts(monkeypatch, db_session, optimization_service, make_cohort):
    cohort = make_cohort(students=6, classes=2, capacity=3)
    release = gate_runs(monkeypatch)

    blocking = optimization_service.start(db_session, request_for(cohort))
    queued = optimization_service.start(db_session, request_for(cohort))
    assert queued.status == RunStatus.pending

    result = optimization_service.cancel(queued.run_id)
    assert result.already_finished is False
    assert result.snapshot.status == RunStatus.cancelled
    assert optimization_service.status(queued.run_id).status == RunStatus.cancelled
    assert optimization_service.status(blocking.run_id).status == RunStatus.pending
    release.set()

    assert optimization_service.wait(blocking.run_id, timeout=30).status == RunStatus.completed
    cancelled = optimization_service.wait(queued.run_id, timeout=30)
    assert cancelled.status == RunStatus.cancelled
    assert cancelled.started_at is None
    assert cancelled.distribution_id is None


def test_shutdown_cancels_active_runs(monkeypatch, db_session, optimization_service, make_cohort):
    cohort = make_cohort(students=6, classes=2, capacity=3)
    release = gate_runs(monkeypatch)
    first = optimization_service.start(db_session, request_for(cohort))
    second = optimization_service.start(db_session, request_for(cohort))

    Timer(0.2, release.set).start()
    optimization_service.shutdown()

    for snapshot in (first, second):
        assert optimization_service.status(snapshot.run_id).status == RunStatus.cancelled
    assert optimization_service.job_store.active_run_ids() == []


def test_finished_runs_are_forgotten_by_the_pool(db_session, optimization_service, make_cohort):
    cohort = make_cohort(students=6, classes=2, capacity=3)
    runs = [optimization_service.start(db_session, request_for(cohort)) for _ in range(3)]

    optimization_service.shutdown()

    assert optimization_service._futures == {}
    for run in runs:
        assert optimization_service.wait(run.run_id, timeout=1).is_terminal


def test_concurrent_runs_with_the_same_seed_are_independent(session_factory, db_session, make_cohort):
    cohort = make_cohort(students=30, classes=3, capacity=10)
    service = OptimizationService(session_factory, job_store=JobStore(), max_workers=2)
    try:
        runs = [
            service.start(
                db_session,
                request_for(cohort, population_size=20, total_generations=60, stagnation_limit=60, random_seed=17),
            )
            for _ in range(2)
        ]
        db_session.rollback()

        seen = {run.run_id: 0 for run in runs}
        deadline = time.monotonic() + 60
        while time.monotonic() < deadline:
            snapshots = [service.status(run.run_id) for run in runs]
            for snapshot in snapshots:
                assert snapshot.current_generation >= seen[snapshot.run_id]
                seen[snapshot.run_id] = snapshot.current_generation
            if all(snapshot.is_terminal for snapshot in snapshots):
                break
            time.sleep(0.005)

        finished = [service.wait(run.run_id, timeout=60) for run in runs]
    finally:
        service.shutdown()

    assert [snapshot.status for snapshot in finished] == [RunStatus.completed, RunStatus.completed]
    assert finished[0].best_fitness == finished[1].best_fitness
    assert finished[0].distribution_id != finished[1].distribution_id

    distributions = [db_session.get(Distribution, snapshot.distribution_id) for snapshot in finished]
    assert distributions[0].fitness_score == distributions[1].fitness_score
    assert distributions[0].random_seed == distributions[1].random_seed == 17

    assignments = []
    for snapshot in finished:
        rows = db_session.execute(
            select(DistributionAssignment.student_id, DistributionAssignment.class_id)
            .where(DistributionAssignment.distribution_id == snapshot.distribution_id)
            .order_by(DistributionAssignment.student_id)
        ).all()
        assignments.append([tuple(row) for row in rows])
    assert len(assignments[0]) == 30
    assert assignments[0] == assignments[1]
