from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from eloar.db.base import Base


class ConstraintSeverity(str, Enum):
    critical = "critical"
    high = "high"
    normal = "normal"


class ConstraintAction(str, Enum):
    separate = "SEPARATE"
    group = "GROUP"


class ConstraintType(Base):
    __tablename__ = "constraint_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    weight: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    severity: Mapped[ConstraintSeverity] = mapped_column(
        SAEnum(ConstraintSeverity, name="constraint_severity"),
        nullable=False,
        default=ConstraintSeverity.normal,
    )
    is_behavioral: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class StudentConstraint(Base):
    __tablename__ = "student_constraints"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    school_year_id: Mapped[int] = mapped_column(ForeignKey("school_years.id"), nullable=False, index=True)
    student_a_id: Mapped[int] = mapped_column(ForeignKey("students.id"), nullable=False)
    student_b_id: Mapped[int] = mapped_column(ForeignKey("students.id"), nullable=False)
    constraint_type_id: Mapped[int] = mapped_column(ForeignKey("constraint_types.id"), nullable=False)
    action: Mapped[ConstraintAction] = mapped_column(
        SAEnum(ConstraintAction, name="constraint_action"),
        nullable=False,
    )
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
