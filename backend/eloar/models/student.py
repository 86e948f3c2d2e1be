from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from eloar.db.base import Base


class Gender(str, Enum):
    male = "M"
    female = "F"
    other = "O"


class SiblingRuleType(str, Enum):
    same_class = "SAME_CLASS"
    different_class = "DIFFERENT_CLASS"
    no_preference = "NO_PREFERENCE"


class Student(Base):
    __tablename__ = "students"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    school_year_id: Mapped[int] = mapped_column(ForeignKey("school_years.id"), nullable=False, index=True)
    grade_level_id: Mapped[int] = mapped_column(ForeignKey("grade_levels.id"), nullable=False, index=True)
    external_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    gender: Mapped[Gender | None] = mapped_column(SAEnum(Gender, name="student_gender"), nullable=True)
    academic_average: Mapped[float | None] = mapped_column(Float, nullable=True)
    behavioral_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    has_special_needs: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class StudentPreference(Base):
    __tablename__ = "student_preferences"
    __table_args__ = (
        UniqueConstraint("student_id", "preferred_student_id", name="uq_student_preferences_edge"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id"), nullable=False, index=True)
    preferred_student_id: Mapped[int] = mapped_column(ForeignKey("students.id"), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class SiblingRule(Base):
    __tablename__ = "sibling_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    school_year_id: Mapped[int] = mapped_column(ForeignKey("school_years.id"), nullable=False, index=True)
    student_a_id: Mapped[int] = mapped_column(ForeignKey("students.id"), nullable=False)
    student_b_id: Mapped[int] = mapped_column(ForeignKey("students.id"), nullable=False)
    rule_type: Mapped[SiblingRuleType] = mapped_column(
        SAEnum(SiblingRuleType, name="sibling_rule_type"),
        nullable=False,
        default=SiblingRuleType.no_preference,
    )
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
