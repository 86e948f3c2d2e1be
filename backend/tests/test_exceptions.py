from eloar.core.exceptions import (
    AppError,
    InfeasibleProblemError,
    InvalidRunTransitionError,
    OptimizationError,
    PersistenceError,
    ResourceNotFoundError,
    RunNotFoundError,
)


def test_app_error_defaults():
    err = AppError("Generic error")
    assert err.status_code == 500
    assert err.details == {}


def test_not_found_errors():
    err = RunNotFoundError("abc")
    assert isinstance(err, ResourceNotFoundError)
    assert err.status_code == 404
    assert err.run_id == "abc"
    assert "abc" in err.message


def test_infeasible_problem_error_structure():
    err = InfeasibleProblemError("no classes", details={"students": 3})
    assert isinstance(err, OptimizationError)
    assert err.status_code == 400
    assert err.message == "INFEASIBLE: no classes"
    assert err.details == {"students": 3}


def test_transition_and_persistence_errors():
    transition = InvalidRunTransitionError("run-1", "COMPLETED", "RUNNING")
    assert transition.status_code == 409
    assert transition.details == {"run_id": "run-1", "current": "COMPLETED", "requested": "RUNNING"}

    persistence = PersistenceError("database write failed")
    assert persistence.status_code == 500
    assert isinstance(persistence, AppError)
