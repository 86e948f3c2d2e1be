from collections.abc import Generator

from sqlalchemy.orm import Session

from eloar.db.session import SessionLocal
from eloar.services.optimization import OptimizationService
from eloar.services.optimization import get_optimization_service as _get_optimization_service


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_optimization_service() -> OptimizationService:
    return _get_optimization_service()
