import pytest
from sqlalchemy import select

from eloar.core.exceptions import PersistenceError
from eloar.engine.domain import ClassSlot, Individual, OptimizationProblem, Student
from eloar.models.distribution import Distribution, DistributionAssignment, DistributionStatus
from eloar.services.materializer import ResultMaterializer


def problem_for(cohort: dict) -> OptimizationProblem:
    return OptimizationProblem(
        school_year_id=cohort["school_year_id"],
        grade_level_id=cohort["grade_level_id"],
        students=tuple(
            Student(id=student_id, grade_level_id=cohort["grade_level_id"], school_year_id=cohort["school_year_id"])
            for student_id in cohort["student_ids"]
        ),
        slots=tuple(ClassSlot(id=class_id, max_capacity=10) for class_id in cohort["class_ids"]),
    )


def persist(materializer: ResultMaterializer, problem: OptimizationProblem, run_id: str) -> int:
    genes = [index % len(problem.slots) for index in range(len(problem.students))]
    return materializer.persist(
        run_id=run_id,
        problem=problem,
        individual=Individual(genes),
        fitness=-12.5,
        generation_count=40,
        execution_time=1.23456,
        configuration_id=None,
        random_seed=1234,
    )


def test_persist_writes_distribution_and_assignments(session_factory, db_session, make_cohort):
    cohort = make_cohort(students=9, classes=3)
    problem = problem_for(cohort)

    distribution_id = persist(ResultMaterializer(session_factory), problem, "run-1")

    distribution = db_session.get(Distribution, distribution_id)
    assert distribution.status == DistributionStatus.completed
    assert distribution.run_id == "run-1"
    assert distribution.fitness_score == -12.5
    assert distribution.generation_count == 40
    assert distribution.execution_time == 1.235
    assert distribution.random_seed == 1234
    assert "run-1" in distribution.name

    assignments = db_session.execute(
        select(DistributionAssignment).where(DistributionAssignment.distribution_id == distribution_id)
    ).scalars().all()
    assert sorted(item.student_id for item in assignments) == sorted(cohort["student_ids"])
    assert {item.class_id for item in assignments} == set(cohort["class_ids"])
    assert not any(item.is_manual_override for item in assignments)


def test_failed_write_rolls_back_and_raises(session_factory, db_session, make_cohort):
    problem = problem_for(make_cohort(students=6, classes=2))
    materializer = ResultMaterializer(session_factory)
    persist(materializer, problem, "duplicate-run")

    with pytest.raises(PersistenceError) as excinfo:
        persist(materializer, problem, "duplicate-run")

    assert excinfo.value.details == {"run_id": "duplicate-run"}
    assert len(db_session.execute(select(Distribution)).scalars().all()) == 1
    assert len(db_session.execute(select(DistributionAssignment)).scalars().all()) == 6
