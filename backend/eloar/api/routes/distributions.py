from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from eloar.api.deps import get_db
from eloar.schemas.common import ApiResponse
from eloar.schemas.distribution import DistributionDetailOut, DistributionOut
from eloar.services.distributions import delete_distribution, distribution_detail, list_distributions

router = APIRouter()


@router.get("", response_model=ApiResponse[list[DistributionOut]])
def list_all(
    school_year_id: int | None = Query(default=None, alias="schoolYearId"),
    grade_level_id: int | None = Query(default=None, alias="gradeLevelId"),
    db: Session = Depends(get_db),
) -> ApiResponse[list[DistributionOut]]:
    items = list_distributions(db, school_year_id=school_year_id, grade_level_id=grade_level_id)
    return ApiResponse[list[DistributionOut]](data=[DistributionOut.model_validate(item) for item in items])


@router.get("/{distribution_id}", response_model=ApiResponse[DistributionDetailOut])
def get_one(distribution_id: int, db: Session = Depends(get_db)) -> ApiResponse[DistributionDetailOut]:
    return ApiResponse[DistributionDetailOut](data=distribution_detail(db, distribution_id))


@router.delete("/{distribution_id}", response_model=ApiResponse[None])
def delete_one(distribution_id: int, db: Session = Depends(get_db)) -> ApiResponse[None]:
    delete_distribution(db, distribution_id)
    return ApiResponse[None](message="Distribution deleted")
