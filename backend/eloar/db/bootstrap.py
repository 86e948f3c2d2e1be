from __future__ import annotations

import logging

from sqlalchemy import inspect, select
from sqlalchemy.orm import Session

from eloar.db.base import Base
from eloar.db.session import engine
from eloar.models.configuration import Configuration
from eloar.schemas.optimization import ObjectiveWeights

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "students": {"id", "school_year_id", "grade_level_id", "academic_average", "behavioral_score"},
    "classes": {"id", "school_year_id", "grade_level_id", "max_capacity", "current_count"},
    "constraint_types": {"id", "code", "weight", "severity", "is_behavioral"},
    "student_constraints": {"id", "student_a_id", "student_b_id", "constraint_type_id", "action"},
    "configurations": {"id", "weights", "is_default"},
    "distributions": {"id", "run_id", "fitness_score", "random_seed", "status"},
    "distribution_assignments": {"id", "distribution_id", "student_id", "class_id"},
}

DEFAULT_CONFIGURATION_NAME = "Default weights"


def _assert_required_columns() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        missing_tables = [name for name in REQUIRED_COLUMNS if name not in table_names]
        if missing_tables:
            raise RuntimeError(f"Missing required tables: {', '.join(sorted(missing_tables))}")

        missing_columns: list[str] = []
        for table_name, required in REQUIRED_COLUMNS.items():
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            for column_name in sorted(required - existing):
                missing_columns.append(f"{table_name}.{column_name}")
        if missing_columns:
            raise RuntimeError(f"Missing required columns: {', '.join(missing_columns)}")


def _ensure_default_configuration() -> None:
    with Session(engine) as session, session.begin():
        existing = session.execute(
            select(Configuration.id).where(Configuration.is_default.is_(True))
        ).first()
        if existing is not None:
            return
        session.add(
            Configuration(
                name=DEFAULT_CONFIGURATION_NAME,
                description="Built-in objective weights",
                weights=ObjectiveWeights().model_dump(),
                is_default=True,
            )
        )
        logger.info("Seeded default weight configuration")


def ensure_runtime_schema_compatibility() -> None:
    try:
        # Ensure missing tables are present before validating the schema.
        Base.metadata.create_all(bind=engine)
        _assert_required_columns()
        _ensure_default_configuration()
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc
