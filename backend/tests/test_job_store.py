from datetime import timedelta

import pytest

from eloar.core.exceptions import InvalidRunTransitionError, RunNotFoundError
from eloar.services.job_store import JobStore, RunStatus


def create_run(store: JobStore, total_generations: int = 10) -> str:
    return store.create(school_year_id=1, grade_level_id=1, total_generations=total_generations)


def test_new_run_is_pending():
    store = JobStore()
    run_id = create_run(store)

    snapshot = store.get(run_id)

    assert snapshot.status == RunStatus.pending
    assert snapshot.progress == 0
    assert snapshot.elapsed_seconds == 0.0
    assert snapshot.cancel_requested is False


def test_unknown_run_raises_not_found():
    store = JobStore()

    with pytest.raises(RunNotFoundError):
        store.get("missing")
    with pytest.raises(RunNotFoundError):
        store.request_cancel("missing")


def test_progress_and_best_fitness_never_regress():
    store = JobStore()
    run_id = create_run(store)
    store.mark_running(run_id, random_seed=5, warnings=["w"])

    store.record_progress(run_id, current_generation=4, best_fitness=-10.0)
    snapshot = store.record_progress(run_id, current_generation=2, best_fitness=-50.0)

    assert snapshot.current_generation == 4
    assert snapshot.best_fitness == -10.0
    assert snapshot.progress == 40
    assert snapshot.random_seed == 5
    assert snapshot.warnings == ("w",)
    assert snapshot.started_at is not None


def test_terminal_runs_are_immutable():
    store = JobStore()
    run_id = create_run(store)
    store.mark_running(run_id)
    finished = store.complete(run_id, distribution_id=3)

    assert finished.progress == 100
    assert finished.finished_at is not None
    with pytest.raises(InvalidRunTransitionError):
        store.fail(run_id, "late failure")
    with pytest.raises(InvalidRunTransitionError):
        store.record_progress(run_id, current_generation=10, best_fitness=0.0)


def test_pending_run_cannot_complete_directly():
    store = JobStore()
    run_id = create_run(store)

    with pytest.raises(InvalidRunTransitionError):
        store.complete(run_id, distribution_id=1)


def test_unknown_fields_are_rejected():
    store = JobStore()
    run_id = create_run(store)

    with pytest.raises(ValueError):
        store.update(run_id, colour="blue")


def test_cancelling_a_queued_run_stops_it_immediately():
    store = JobStore()
    run_id = create_run(store)

    result = store.request_cancel(run_id)

    assert result.already_finished is False
    assert result.snapshot.status == RunStatus.cancelled
    assert result.snapshot.finished_at is not None
    assert result.snapshot.error_message is None
    assert store.get(run_id).status == RunStatus.cancelled
    with pytest.raises(InvalidRunTransitionError):
        store.mark_running(run_id)


def test_request_cancel_on_a_running_run_is_idempotent_and_reports_finished_runs():
    store = JobStore()
    run_id = create_run(store)
    store.mark_running(run_id)

    first = store.request_cancel(run_id)
    second = store.request_cancel(run_id)
    assert first.already_finished is False
    assert second.already_finished is False
    assert second.snapshot.status == RunStatus.running
    assert second.snapshot.cancel_requested is True
    assert store.is_cancel_requested(run_id)

    store.cancel(run_id)
    after = store.request_cancel(run_id)
    assert after.already_finished is True
    assert after.snapshot.status == RunStatus.cancelled
    assert after.snapshot.error_message is None


def test_active_runs_and_purge():
    store = JobStore(retention_seconds=60)
    active = create_run(store)
    finished = create_run(store)
    store.mark_running(finished)
    store.fail(finished, "boom")

    assert store.active_run_ids() == [active]
    assert store.purge_finished() == 0

    later = store.get(finished).finished_at + timedelta(seconds=61)
    assert store.purge_finished(now=later) == 1
    with pytest.raises(RunNotFoundError):
        store.get(finished)
    assert store.get(active).status == RunStatus.pending
