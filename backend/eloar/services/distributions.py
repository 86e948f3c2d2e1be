from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from eloar.core.exceptions import ResourceNotFoundError
from eloar.models.distribution import Distribution
from eloar.models.school import SchoolClass
from eloar.models.student import Gender, Student
from eloar.schemas.distribution import ClassStatsOut, DistributionDetailOut

logger = logging.getLogger(__name__)


def _mean(values: list[float]) -> float | None:
    if not values:
        return None
    return round(sum(values) / len(values), 2)


def list_distributions(
    db: Session,
    *,
    school_year_id: int | None = None,
    grade_level_id: int | None = None,
) -> list[Distribution]:
    query = select(Distribution)
    if school_year_id is not None:
        query = query.where(Distribution.school_year_id == school_year_id)
    if grade_level_id is not None:
        query = query.where(Distribution.grade_level_id == grade_level_id)
    return list(db.execute(query.order_by(Distribution.id.desc())).scalars().all())


def get_distribution(db: Session, distribution_id: int) -> Distribution:
    distribution = db.execute(
        select(Distribution)
        .options(selectinload(Distribution.assignments))
        .where(Distribution.id == distribution_id)
    ).scalar_one_or_none()
    if distribution is None:
        raise ResourceNotFoundError("Distribution", distribution_id)
    return distribution


def class_statistics(db: Session, distribution: Distribution) -> list[ClassStatsOut]:
    """Per-class summary of a distribution; averages only cover students with a recorded value."""
    classes = (
        db.execute(
            select(SchoolClass)
            .where(
                SchoolClass.school_year_id == distribution.school_year_id,
                SchoolClass.grade_level_id == distribution.grade_level_id,
            )
            .order_by(SchoolClass.id)
        )
        .scalars()
        .all()
    )
    student_ids = [item.student_id for item in distribution.assignments]
    students = {
        student.id: student
        for student in db.execute(select(Student).where(Student.id.in_(student_ids))).scalars().all()
    } if student_ids else {}

    members: dict[int, list[Student]] = {school_class.id: [] for school_class in classes}
    for assignment in distribution.assignments:
        student = students.get(assignment.student_id)
        if student is None:
            logger.warning(
                "Distribution %s references missing student %s",
                distribution.id,
                assignment.student_id,
            )
            continue
        members.setdefault(assignment.class_id, []).append(student)

    names = {school_class.id: school_class for school_class in classes}
    stats: list[ClassStatsOut] = []
    for class_id, group in members.items():
        school_class = names.get(class_id)
        stats.append(
            ClassStatsOut(
                class_id=class_id,
                class_name=school_class.name if school_class is not None else f"Class {class_id}",
                max_capacity=school_class.max_capacity if school_class is not None else 0,
                total_students=len(group),
                male_count=sum(1 for student in group if student.gender == Gender.male),
                female_count=sum(1 for student in group if student.gender == Gender.female),
                other_count=sum(1 for student in group if student.gender == Gender.other),
                avg_academic=_mean([s.academic_average for s in group if s.academic_average is not None]),
                avg_behavioral=_mean([s.behavioral_score for s in group if s.behavioral_score is not None]),
                special_needs_count=sum(1 for student in group if student.has_special_needs),
                student_ids=sorted(student.id for student in group),
            )
        )
    return stats


def distribution_detail(db: Session, distribution_id: int) -> DistributionDetailOut:
    distribution = get_distribution(db, distribution_id)
    detail = DistributionDetailOut.model_validate(distribution, from_attributes=True)
    detail.classes = class_statistics(db, distribution)
    return detail


def delete_distribution(db: Session, distribution_id: int) -> None:
    distribution = get_distribution(db, distribution_id)
    db.delete(distribution)
    db.commit()
    logger.info("Deleted distribution %s", distribution_id)
