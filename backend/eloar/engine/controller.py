from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from time import perf_counter
from typing import Callable, Literal, Protocol

from eloar.core.exceptions import InfeasibleProblemError, InvalidRunTransitionError, PersistenceError
from eloar.engine.domain import Individual, OptimizationProblem
from eloar.engine.fitness import FitnessEvaluator, PenaltyBreakdown
from eloar.engine.population import PopulationManager
from eloar.schemas.optimization import OptimizerSettings
from eloar.services.job_store import JobStore, RunSnapshot

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal error during optimization. The failure has been logged for operators."

StopReason = Literal["generation_limit", "stagnation", "cancelled"]


class ResultSink(Protocol):
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
    ) -> int: ...


@dataclass
class RunOutcome:
    stopped_by: StopReason
    generations_run: int
    best: Individual | None = None
    best_fitness: float | None = None
    breakdown: PenaltyBreakdown | None = None
    history: list[float] = field(default_factory=list)
    elapsed_seconds: float = 0.0


def draw_seed() -> int:
    return time.time_ns() % 2_000_000_000


def validate_feasibility(problem: OptimizationProblem) -> None:
    if not problem.students:
        raise InfeasibleProblemError("no students to distribute for this school year and grade level")
    if not problem.slots:
        raise InfeasibleProblemError("no classes configured for this school year and grade level")
    foreign = [
        student.id
        for student in problem.students
        if student.school_year_id != problem.school_year_id or student.grade_level_id != problem.grade_level_id
    ]
    if foreign:
        raise InfeasibleProblemError(
            f"{len(foreign)} students do not belong to the target school year and grade level",
            details={"student_ids": foreign[:20]},
        )
    seats = problem.total_free_seats
    if seats < len(problem.students):
        raise InfeasibleProblemError(
            f"classes offer {seats} free seats for {len(problem.students)} students",
            details={"free_seats": seats, "students": len(problem.students)},
        )


class OptimizationRunController:
    """Drives one run from PENDING to a terminal state.

    Cancellation is checked once per generation boundary; nothing escapes ``run``, every failure
    ends up in the run's job store entry.
    """

    def __init__(
        self,
        *,
        run_id: str,
        problem: OptimizationProblem,
        settings: OptimizerSettings,
        job_store: JobStore,
        materializer: ResultSink | None = None,
        configuration_id: int | None = None,
        on_generation: Callable[[int, float], None] | None = None,
    ) -> None:
        self.run_id = run_id
        self.problem = problem
        self.settings = settings
        self.job_store = job_store
        self.materializer = materializer
        self.configuration_id = configuration_id
        self.on_generation = on_generation
        self.seed = settings.random_seed if settings.random_seed is not None else draw_seed()
        self.outcome: RunOutcome | None = None

    def run(self) -> RunSnapshot:
        current = self.job_store.get(self.run_id)
        if current.is_terminal:
            logger.info("Run %s was %s before its worker started", self.run_id, current.status.value)
            return current
        try:
            validate_feasibility(self.problem)
        except InfeasibleProblemError as exc:
            logger.info("Run %s rejected: %s", self.run_id, exc.message)
            try:
                return self.job_store.fail(self.run_id, exc.message)
            except InvalidRunTransitionError:
                return self.job_store.get(self.run_id)

        try:
            self.job_store.mark_running(
                self.run_id,
                random_seed=self.seed,
                warnings=self.problem.constraint_set.warnings,
            )
        except InvalidRunTransitionError:
            # Cancelled while still queued.
            return self.job_store.get(self.run_id)
        logger.info(
            "Run %s started students=%s classes=%s population=%s generations=%s seed=%s",
            self.run_id,
            len(self.problem.students),
            len(self.problem.slots),
            self.settings.population_size,
            self.settings.total_generations,
            self.seed,
        )
        try:
            outcome = self.optimize()
        except Exception:
            logger.exception("Run %s failed during optimization", self.run_id)
            return self.job_store.fail(self.run_id, INTERNAL_ERROR_MESSAGE)
        self.outcome = outcome

        if outcome.stopped_by == "cancelled" or outcome.best is None:
            logger.info("Run %s cancelled after %s generations", self.run_id, outcome.generations_run)
            return self.job_store.cancel(self.run_id)
        return self._finish(outcome)

    def optimize(self) -> RunOutcome:
        start = perf_counter()
        rng = random.Random(self.seed)
        evaluator = FitnessEvaluator(self.problem)
        manager = PopulationManager(self.problem, self.settings, rng)
        population = manager.initialize()

        best: Individual | None = None
        best_fitness = float("-inf")
        stagnant = 0
        history: list[float] = []
        stopped_by: StopReason = "generation_limit"
        generations_run = 0
        total = self.settings.total_generations

        for generation in range(total):
            if self.job_store.is_cancel_requested(self.run_id):
                stopped_by = "cancelled"
                break

            for individual in population:
                if not individual.is_evaluated:
                    evaluator.evaluate(individual)
            generation_best = max(population, key=lambda item: item.fitness)
            if generation_best.fitness > best_fitness:
                best = generation_best.clone()
                best_fitness = generation_best.fitness
                stagnant = 0
            else:
                stagnant += 1
            history.append(best_fitness)
            generations_run = generation + 1

            self.job_store.record_progress(self.run_id, current_generation=generations_run, best_fitness=best_fitness)
            logger.debug("Run %s generation=%s best=%.4f stagnant=%s", self.run_id, generations_run, best_fitness, stagnant)
            if self.on_generation is not None:
                self.on_generation(generation, best_fitness)

            if stagnant >= self.settings.stagnation_limit:
                stopped_by = "stagnation"
                break
            if generations_run < total:
                population = manager.next_generation(
                    population,
                    mutation_rate=manager.adaptive_mutation_rate(stagnant),
                )

        return RunOutcome(
            stopped_by=stopped_by,
            generations_run=generations_run,
            best=best,
            best_fitness=best_fitness if best is not None else None,
            breakdown=evaluator.breakdown(best) if best is not None else None,
            history=history,
            elapsed_seconds=perf_counter() - start,
        )

    def _finish(self, outcome: RunOutcome) -> RunSnapshot:
        logger.info(
            "Run %s finished by %s after %s generations best=%.4f",
            self.run_id,
            outcome.stopped_by,
            outcome.generations_run,
            outcome.best_fitness,
        )
        if self.materializer is None:
            return self.job_store.fail(
                self.run_id,
                "Optimization completed but the result could not be saved: no result store configured",
            )
        try:
            distribution_id = self.materializer.persist(
                run_id=self.run_id,
                problem=self.problem,
                individual=outcome.best,
                fitness=outcome.best_fitness,
                generation_count=outcome.generations_run,
                execution_time=outcome.elapsed_seconds,
                configuration_id=self.configuration_id,
                random_seed=self.seed,
            )
        except PersistenceError as exc:
            # Recomputing is expensive; keep the winning assignment in the logs for manual recovery.
            logger.error(
                "Run %s result not persisted: %s fitness=%s assignment=%s",
                self.run_id,
                exc.message,
                outcome.best_fitness,
                outcome.best.to_assignment(self.problem),
            )
            return self.job_store.fail(
                self.run_id,
                f"Optimization completed but the result could not be saved: {exc.message}",
            )
        except Exception:
            logger.exception(
                "Run %s result not persisted fitness=%s assignment=%s",
                self.run_id,
                outcome.best_fitness,
                outcome.best.to_assignment(self.problem),
            )
            return self.job_store.fail(
                self.run_id,
                "Optimization completed but the result could not be saved: unexpected storage error",
            )
        return self.job_store.complete(self.run_id, distribution_id=distribution_id)
