from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eloar.core.exceptions import IndividualInvariantError, PersistenceError
from eloar.engine.domain import Individual, OptimizationProblem
from eloar.models.distribution import Distribution, DistributionAssignment, DistributionStatus

logger = logging.getLogger(__name__)


def distribution_name(run_id: str, *, created_at: datetime | None = None) -> str:
    stamp = (created_at or datetime.now(timezone.utc)).strftime("%Y-%m-%d %H:%M")
    return f"Optimization {stamp} ({run_id[:8]})"


class ResultMaterializer:
    """Writes the winning individual as one Distribution plus one assignment per student, in one transaction."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self.session_factory = session_factory

    def persist(
        self,
        *,
        run_id: str,
        problem: OptimizationProblem,
        individual: Individual,
        fitness: float,
        generation_count: int,
        execution_time: float,
        configuration_id: int | None,
        random_seed: int | None,
    ) -> int:
        assignment = individual.to_assignment(problem)
        if len(assignment) != len(problem.students):
            raise IndividualInvariantError(
                f"Best individual covers {len(assignment)} of {len(problem.students)} students",
            )

        try:
            with self.session_factory() as session, session.begin():
                distribution = Distribution(
                    school_year_id=problem.school_year_id,
                    grade_level_id=problem.grade_level_id,
                    configuration_id=configuration_id,
                    run_id=run_id,
                    name=distribution_name(run_id),
                    fitness_score=fitness,
                    generation_count=generation_count,
                    execution_time=round(execution_time, 3),
                    random_seed=random_seed,
                    status=DistributionStatus.completed,
                )
                distribution.assignments = [
                    DistributionAssignment(student_id=student_id, class_id=class_id)
                    for student_id, class_id in sorted(assignment.items())
                ]
                session.add(distribution)
                session.flush()
                distribution_id = distribution.id
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"database write failed ({exc.__class__.__name__})",
                details={"run_id": run_id},
            ) from exc

        logger.info(
            "Run %s persisted distribution=%s assignments=%s",
            run_id,
            distribution_id,
            len(assignment),
        )
        return distribution_id
