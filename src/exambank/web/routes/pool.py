"""Pool and distribution endpoints."""

from typing import Any

from fastapi import APIRouter, Body, HTTPException, Query, status

from exambank.core.question_loader import PoolParseError
from exambank.web.exam_service import PoolNotLoadedError, get_exam_service
from exambank.web.schemas import DistributionResponse, ErrorDetail, PoolStatsResponse

router = APIRouter(prefix="/api", tags=["pool"])


@router.post("/pool", response_model=PoolStatsResponse, status_code=status.HTTP_201_CREATED)
async def load_pool(document: Any = Body(...)) -> PoolStatsResponse:
    """Load a pool document (array or {"questions": [...]})."""
    service = get_exam_service()
    try:
        service.load_pool(document)
    except PoolParseError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
    return PoolStatsResponse(**service.pool_stats())


@router.get("/pool", response_model=PoolStatsResponse)
async def get_pool() -> PoolStatsResponse:
    """Breakdown of the loaded pool."""
    try:
        return PoolStatsResponse(**get_exam_service().pool_stats())
    except PoolNotLoadedError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/distribution", response_model=DistributionResponse)
async def get_distribution(n: int = Query(30, ge=1)) -> DistributionResponse:
    """Standard-mode quotas for n questions."""
    service = get_exam_service()
    try:
        result = service.distribution(n)
    except PoolNotLoadedError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not result.success or result.quotas is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=ErrorDetail(
                error=result.error.value if result.error else "unknown",
                message=result.message,
            ).model_dump(),
        )

    return DistributionResponse(
        requested=n,
        max_feasible=result.max_feasible,
        clamped=result.clamped,
        recall=result.quotas.recall,
        comprehension=result.quotas.comprehension,
        application=result.quotas.application,
    )
