from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from eloar.engine.domain import WeightConfiguration
from eloar.services.job_store import RunSnapshot, RunStatus


class ObjectiveWeights(BaseModel):
    critical_constraints: float = Field(default=1000.0, ge=0.0, le=1_000_000.0)
    high_constraints: float = Field(default=500.0, ge=0.0, le=1_000_000.0)
    behavioral_separation: float = Field(default=300.0, ge=0.0, le=1_000_000.0)
    sibling_rules: float = Field(default=200.0, ge=0.0, le=1_000_000.0)
    student_preferences: float = Field(default=100.0, ge=0.0, le=1_000_000.0)
    academic_balance: float = Field(default=50.0, ge=0.0, le=1_000_000.0)
    class_size_balance: float = Field(default=50.0, ge=0.0, le=1_000_000.0)

    def to_domain(self) -> WeightConfiguration:
        return WeightConfiguration(**self.model_dump())


class OptimizerSettings(BaseModel):
    population_size: int = Field(default=100, ge=4, le=2000, alias="populationSize")
    total_generations: int = Field(default=150, ge=1, le=5000, alias="totalGenerations")
    mutation_rate: float = Field(default=0.15, ge=0.0, le=1.0, alias="mutationRate")
    crossover_rate: float = Field(default=0.85, ge=0.0, le=1.0, alias="crossoverRate")
    elite_count: int = Field(default=2, ge=1, le=100, alias="eliteCount")
    tournament_size: int = Field(default=3, ge=2, le=50, alias="tournamentSize")
    stagnation_limit: int = Field(default=40, ge=1, le=5000, alias="stagnationLimit")
    random_seed: int | None = Field(default=None, ge=0, le=2_000_000_000, alias="randomSeed")

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def validate_relationships(self) -> "OptimizerSettings":
        if self.elite_count >= self.population_size:
            raise ValueError("elite_count must be less than population_size")
        if self.tournament_size > self.population_size:
            raise ValueError("tournament_size cannot exceed population_size")
        return self


class StartOptimizationRequest(BaseModel):
    school_year_id: int = Field(ge=1, alias="schoolYearId")
    grade_level_id: int = Field(ge=1, alias="gradeLevelId")
    configuration_id: int | None = Field(default=None, ge=1, alias="configurationId")
    settings_override: OptimizerSettings | None = Field(default=None, alias="settingsOverride")

    model_config = ConfigDict(populate_by_name=True)


class OptimizationStartOut(BaseModel):
    run_id: str = Field(alias="runId")
    status: RunStatus

    model_config = ConfigDict(populate_by_name=True)


class OptimizationStatusOut(BaseModel):
    run_id: str = Field(alias="runId")
    status: RunStatus
    progress: int = Field(ge=0, le=100)
    current_generation: int = Field(alias="currentGeneration")
    total_generations: int = Field(alias="totalGenerations")
    best_fitness: float | None = Field(default=None, alias="bestFitness")
    distribution_id: int | None = Field(default=None, alias="distributionId")
    error_message: str | None = Field(default=None, alias="errorMessage")
    random_seed: int | None = Field(default=None, alias="randomSeed")
    warnings: list[str] = Field(default_factory=list)
    start_time: datetime = Field(alias="startTime")
    end_time: datetime | None = Field(default=None, alias="endTime")
    elapsed_time: float = Field(alias="elapsedTime")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_snapshot(cls, snapshot: RunSnapshot) -> "OptimizationStatusOut":
        return cls(
            run_id=snapshot.run_id,
            status=snapshot.status,
            progress=snapshot.progress,
            current_generation=snapshot.current_generation,
            total_generations=snapshot.total_generations,
            best_fitness=snapshot.best_fitness,
            distribution_id=snapshot.distribution_id,
            error_message=snapshot.error_message,
            random_seed=snapshot.random_seed,
            warnings=list(snapshot.warnings),
            start_time=snapshot.created_at,
            end_time=snapshot.finished_at,
            elapsed_time=snapshot.elapsed_seconds,
        )


class CancelOptimizationOut(OptimizationStatusOut):
    already_finished: bool = Field(default=False, alias="alreadyFinished")
