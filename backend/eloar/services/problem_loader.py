from __future__ import annotations

import logging

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from eloar.core.exceptions import OptimizationError, ResourceNotFoundError
from eloar.engine.domain import (
    ClassSlot,
    ConstraintSet,
    OptimizationProblem,
    PairConstraint,
    SiblingRule,
    Student,
    StudentPreference,
    WeightConfiguration,
    resolve_constraints,
)
from eloar.models.configuration import Configuration, OptimizerSettingsRecord
from eloar.models.constraint import ConstraintType, StudentConstraint
from eloar.models.school import GradeLevel, SchoolClass, SchoolYear
from eloar.models.student import SiblingRule as SiblingRuleRecord
from eloar.models.student import Student as StudentRecord
from eloar.models.student import StudentPreference as StudentPreferenceRecord
from eloar.schemas.optimization import ObjectiveWeights, OptimizerSettings

logger = logging.getLogger(__name__)


def ensure_scope_exists(db: Session, *, school_year_id: int, grade_level_id: int) -> None:
    if db.get(SchoolYear, school_year_id) is None:
        raise ResourceNotFoundError("School year", school_year_id)
    if db.get(GradeLevel, grade_level_id) is None:
        raise ResourceNotFoundError("Grade level", grade_level_id)


def resolve_weights(db: Session, configuration_id: int | None) -> tuple[int | None, WeightConfiguration]:
    """Named configuration, else the default one, else the built-in weights."""
    record: Configuration | None = None
    if configuration_id is not None:
        record = db.get(Configuration, configuration_id)
        if record is None:
            logger.warning("Configuration %s not found, falling back to the default configuration", configuration_id)
    if record is None:
        record = (
            db.execute(select(Configuration).where(Configuration.is_default.is_(True)).order_by(Configuration.id))
            .scalars()
            .first()
        )
    if record is None:
        return None, ObjectiveWeights().to_domain()
    try:
        weights = ObjectiveWeights.model_validate({**ObjectiveWeights().model_dump(), **(record.weights or {})})
    except ValidationError:
        logger.warning("Configuration %s has invalid weights, using built-in weights", record.id, exc_info=True)
        return record.id, ObjectiveWeights().to_domain()
    return record.id, weights.to_domain()


def _load_students(db: Session, school_year_id: int, grade_level_id: int) -> tuple[Student, ...]:
    records = (
        db.execute(
            select(StudentRecord)
            .where(
                StudentRecord.school_year_id == school_year_id,
                StudentRecord.grade_level_id == grade_level_id,
            )
            .order_by(StudentRecord.id)
        )
        .scalars()
        .all()
    )
    students: list[Student] = []
    for record in records:
        try:
            students.append(
                Student(
                    id=record.id,
                    grade_level_id=record.grade_level_id,
                    school_year_id=record.school_year_id,
                    gender=record.gender.value if record.gender is not None else None,
                    academic_average=record.academic_average,
                    behavioral_score=record.behavioral_score,
                    has_special_needs=record.has_special_needs,
                )
            )
        except ValueError as exc:
            raise OptimizationError(
                f"Student {record.id} has invalid data: {exc}",
                details={"student_id": record.id},
            ) from exc
    return tuple(students)


def _load_slots(db: Session, school_year_id: int, grade_level_id: int) -> tuple[ClassSlot, ...]:
    records = (
        db.execute(
            select(SchoolClass)
            .where(
                SchoolClass.school_year_id == school_year_id,
                SchoolClass.grade_level_id == grade_level_id,
            )
            .order_by(SchoolClass.id)
        )
        .scalars()
        .all()
    )
    return tuple(
        ClassSlot(
            id=record.id,
            max_capacity=record.max_capacity,
            current_count=record.current_count,
            name=record.name,
        )
        for record in records
    )


def _load_constraint_set(db: Session, school_year_id: int, cohort: set[int]) -> ConstraintSet:
    warnings: list[str] = []
    dropped = 0

    rows = db.execute(
        select(StudentConstraint, ConstraintType)
        .join(ConstraintType, ConstraintType.id == StudentConstraint.constraint_type_id)
        .where(StudentConstraint.school_year_id == school_year_id)
        .order_by(StudentConstraint.id)
    ).all()
    constraints: list[PairConstraint] = []
    for record, constraint_type in rows:
        if record.student_a_id not in cohort or record.student_b_id not in cohort:
            dropped += 1
            continue
        constraints.append(
            PairConstraint(
                id=record.id,
                student_a_id=record.student_a_id,
                student_b_id=record.student_b_id,
                action=record.action.value,
                severity=constraint_type.severity.value,
                weight=constraint_type.weight,
                is_behavioral=constraint_type.is_behavioral,
            )
        )
    resolved, contradictions = resolve_constraints(constraints)
    warnings.extend(contradictions)

    sibling_rules: list[SiblingRule] = []
    for record in (
        db.execute(
            select(SiblingRuleRecord)
            .where(SiblingRuleRecord.school_year_id == school_year_id)
            .order_by(SiblingRuleRecord.id)
        )
        .scalars()
        .all()
    ):
        if record.student_a_id not in cohort or record.student_b_id not in cohort:
            dropped += 1
            continue
        sibling_rules.append(
            SiblingRule(
                id=record.id,
                student_a_id=record.student_a_id,
                student_b_id=record.student_b_id,
                rule_type=record.rule_type.value,
            )
        )

    preferences: list[StudentPreference] = []
    if cohort:
        for record in (
            db.execute(
                select(StudentPreferenceRecord)
                .where(StudentPreferenceRecord.student_id.in_(sorted(cohort)))
                .order_by(StudentPreferenceRecord.id)
            )
            .scalars()
            .all()
        ):
            if record.preferred_student_id not in cohort:
                dropped += 1
                continue
            try:
                preferences.append(
                    StudentPreference(
                        student_id=record.student_id,
                        preferred_student_id=record.preferred_student_id,
                        priority=record.priority,
                    )
                )
            except ValueError as exc:
                raise OptimizationError(
                    f"Preference {record.id} of student {record.student_id} is invalid: {exc}",
                    details={"student_id": record.student_id, "preference_id": record.id},
                ) from exc

    if dropped:
        logger.warning("Ignored %s edges referencing students outside the cohort", dropped)
        warnings.append(f"{dropped} constraints, sibling rules or preferences reference students outside this cohort and were ignored")

    return ConstraintSet(
        constraints=resolved,
        sibling_rules=tuple(sibling_rules),
        preferences=tuple(preferences),
        warnings=tuple(warnings),
    )


def load_problem(
    db: Session,
    *,
    school_year_id: int,
    grade_level_id: int,
    weights: WeightConfiguration,
) -> OptimizationProblem:
    students = _load_students(db, school_year_id, grade_level_id)
    slots = _load_slots(db, school_year_id, grade_level_id)
    cohort = {student.id for student in students}
    return OptimizationProblem(
        school_year_id=school_year_id,
        grade_level_id=grade_level_id,
        students=students,
        slots=slots,
        constraint_set=_load_constraint_set(db, school_year_id, cohort),
        weights=weights,
    )


def resolve_optimizer_settings(db: Session, override: OptimizerSettings | None = None) -> OptimizerSettings:
    """Request override, else the persisted ``optimizer_settings`` row, else schema defaults."""
    if override is not None:
        return override
    record = db.get(OptimizerSettingsRecord, 1)
    if record is None:
        return OptimizerSettings()
    try:
        return OptimizerSettings(
            population_size=record.population_size,
            total_generations=record.total_generations,
            mutation_rate=record.mutation_rate,
            crossover_rate=record.crossover_rate,
            elite_count=record.elite_count,
            tournament_size=record.tournament_size,
            stagnation_limit=record.stagnation_limit,
            random_seed=record.random_seed,
        )
    except ValidationError:
        logger.warning("Stored optimizer settings are invalid, using defaults", exc_info=True)
        return OptimizerSettings()
