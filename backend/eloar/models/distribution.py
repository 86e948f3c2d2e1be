from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from eloar.db.base import Base


class DistributionStatus(str, Enum):
    draft = "DRAFT"
    optimizing = "OPTIMIZING"
    completed = "COMPLETED"
    failed = "FAILED"


class Distribution(Base):
    __tablename__ = "distributions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    school_year_id: Mapped[int] = mapped_column(ForeignKey("school_years.id"), nullable=False, index=True)
    grade_level_id: Mapped[int] = mapped_column(ForeignKey("grade_levels.id"), nullable=False, index=True)
    configuration_id: Mapped[int | None] = mapped_column(ForeignKey("configurations.id"), nullable=True)
    run_id: Mapped[str | None] = mapped_column(String(36), nullable=True, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    fitness_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    generation_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    execution_time: Mapped[float | None] = mapped_column(Float, nullable=True)
    random_seed: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[DistributionStatus] = mapped_column(
        SAEnum(DistributionStatus, name="distribution_status"),
        nullable=False,
        default=DistributionStatus.draft,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    assignments: Mapped[list[DistributionAssignment]] = relationship(
        back_populates="distribution",
        cascade="all, delete-orphan",
        order_by="DistributionAssignment.student_id",
    )


class DistributionAssignment(Base):
    __tablename__ = "distribution_assignments"
    __table_args__ = (
        UniqueConstraint("distribution_id", "student_id", name="uq_distribution_assignments_student"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    distribution_id: Mapped[int] = mapped_column(ForeignKey("distributions.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id"), nullable=False)
    class_id: Mapped[int] = mapped_column(ForeignKey("classes.id"), nullable=False)
    is_manual_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    distribution: Mapped[Distribution] = relationship(back_populates="assignments")
