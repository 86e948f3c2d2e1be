from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from eloar.models.distribution import DistributionStatus


class DistributionOut(BaseModel):
    id: int
    school_year_id: int = Field(alias="schoolYearId")
    grade_level_id: int = Field(alias="gradeLevelId")
    configuration_id: int | None = Field(default=None, alias="configurationId")
    run_id: str | None = Field(default=None, alias="runId")
    name: str
    fitness_score: float | None = Field(default=None, alias="fitnessScore")
    generation_count: int | None = Field(default=None, alias="generationCount")
    execution_time: float | None = Field(default=None, alias="executionTime")
    random_seed: int | None = Field(default=None, alias="randomSeed")
    status: DistributionStatus
    created_at: datetime | None = Field(default=None, alias="createdAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class DistributionAssignmentOut(BaseModel):
    student_id: int = Field(alias="studentId")
    class_id: int = Field(alias="classId")
    is_manual_override: bool = Field(default=False, alias="isManualOverride")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class ClassStatsOut(BaseModel):
    class_id: int = Field(alias="classId")
    class_name: str = Field(alias="className")
    max_capacity: int = Field(alias="maxCapacity")
    total_students: int = Field(alias="totalStudents")
    male_count: int = Field(default=0, alias="maleCount")
    female_count: int = Field(default=0, alias="femaleCount")
    other_count: int = Field(default=0, alias="otherCount")
    avg_academic: float | None = Field(default=None, alias="avgAcademic")
    avg_behavioral: float | None = Field(default=None, alias="avgBehavioral")
    special_needs_count: int = Field(default=0, alias="specialNeedsCount")
    student_ids: list[int] = Field(default_factory=list, alias="studentIds")

    model_config = ConfigDict(populate_by_name=True)


class DistributionDetailOut(DistributionOut):
    assignments: list[DistributionAssignmentOut] = Field(default_factory=list)
    classes: list[ClassStatsOut] = Field(default_factory=list)
