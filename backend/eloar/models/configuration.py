from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from eloar.db.base import Base


class Configuration(Base):
    __tablename__ = "configurations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    weights: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())


class OptimizerSettingsRecord(Base):
    __tablename__ = "optimizer_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    population_size: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    total_generations: Mapped[int] = mapped_column(Integer, nullable=False, default=150)
    mutation_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.15)
    crossover_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.85)
    elite_count: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    tournament_size: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    stagnation_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=40)
    random_seed: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
