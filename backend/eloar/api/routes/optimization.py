from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from eloar.api.deps import get_db, get_optimization_service
from eloar.schemas.common import ApiResponse
from eloar.schemas.optimization import (
    CancelOptimizationOut,
    OptimizationStartOut,
    OptimizationStatusOut,
    StartOptimizationRequest,
)
from eloar.services.optimization import OptimizationService

router = APIRouter()


@router.post(
    "/optimize",
    response_model=ApiResponse[OptimizationStartOut],
    status_code=status.HTTP_202_ACCEPTED,
)
def start_optimization(
    payload: StartOptimizationRequest,
    db: Session = Depends(get_db),
    service: OptimizationService = Depends(get_optimization_service),
) -> ApiResponse[OptimizationStartOut]:
    snapshot = service.start(db, payload)
    return ApiResponse[OptimizationStartOut](
        message="Optimization started",
        data=OptimizationStartOut(run_id=snapshot.run_id, status=snapshot.status),
    )


@router.get("/optimize/{run_id}/status", response_model=ApiResponse[OptimizationStatusOut])
def get_optimization_status(
    run_id: str,
    service: OptimizationService = Depends(get_optimization_service),
) -> ApiResponse[OptimizationStatusOut]:
    return ApiResponse[OptimizationStatusOut](data=OptimizationStatusOut.from_snapshot(service.status(run_id)))


@router.post("/optimize/{run_id}/cancel", response_model=ApiResponse[CancelOptimizationOut])
def cancel_optimization(
    run_id: str,
    service: OptimizationService = Depends(get_optimization_service),
) -> ApiResponse[CancelOptimizationOut]:
    result = service.cancel(run_id)
    status_out = OptimizationStatusOut.from_snapshot(result.snapshot)
    message = "Optimization already finished" if result.already_finished else "Optimization cancellation requested"
    return ApiResponse[CancelOptimizationOut](
        message=message,
        data=CancelOptimizationOut(**status_out.model_dump(), already_finished=result.already_finished),
    )
