import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

import pytest
from fastapi.testclient import TestClient #gives you a fake http client that can call your FastAPI routes without running a real server.
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from eloar.api.deps import get_db, get_optimization_service
from eloar.db.base import Base
from eloar.main import app
from eloar.models.school import GradeLevel, SchoolClass, SchoolYear
from eloar.models.student import Gender, Student
from eloar.services.job_store import JobStore
from eloar.services.optimization import OptimizationService


@pytest.fixture()
def session_factory():
    engine = create_engine( #create isolated DB
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def optimization_service(session_factory):
    service = OptimizationService(session_factory, job_store=JobStore(), max_workers=1)
    yield service
    service.shutdown()


@pytest.fixture() #test client
def client(session_factory, optimization_service):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_optimization_service] = lambda: optimization_service

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def make_cohort(session_factory):
    """Seeds a school year, a grade level, its classes and students; returns their ids."""
    counter = {"value": 0}

    def _make(*, students: int = 30, classes: int = 3, capacity: int = 10, current_count: int = 0) -> dict:
        counter["value"] += 1
        suffix = counter["value"]
        genders = [Gender.male, Gender.female, Gender.other]
        with session_factory() as db:
            year = SchoolYear(year=2025 + suffix, name=f"{2025 + suffix}/{2026 + suffix}", is_active=True)
            grade = GradeLevel(name=f"Grade {suffix}", code=f"G{suffix}", number_of_classes=classes)
            db.add_all([year, grade])
            db.flush()
            class_rows = [
                SchoolClass(
                    school_year_id=year.id,
                    grade_level_id=grade.id,
                    name=f"{suffix}{chr(ord('A') + index)}",
                    max_capacity=capacity,
                    current_count=current_count,
                )
                for index in range(classes)
            ]
            student_rows = [
                Student(
                    school_year_id=year.id,
                    grade_level_id=grade.id,
                    full_name=f"Student {suffix}-{index}",
                    gender=genders[index % 3],
                    academic_average=float(5 + index % 5),
                    behavioral_score=float(6 + index % 3),
                    has_special_needs=index % 10 == 0,
                )
                for index in range(students)
            ]
            db.add_all(class_rows + student_rows)
            db.commit()
            return {
                "school_year_id": year.id,
                "grade_level_id": grade.id,
                "class_ids": [row.id for row in class_rows],
                "student_ids": [row.id for row in student_rows],
            }

    return _make
