"""Session history endpoint."""

from fastapi import APIRouter, HTTPException, Query, status

from exambank.core.history_repository import HistoryStoreError
from exambank.web.exam_service import get_exam_service
from exambank.web.schemas import HistoryResponse, SessionResultResponse

router = APIRouter(prefix="/api/history", tags=["history"])


@router.get("", response_model=HistoryResponse)
async def get_history(limit: int | None = Query(None, ge=1)) -> HistoryResponse:
    """Stored session results, newest first."""
    try:
        sessions = get_exam_service().history.load()
    except HistoryStoreError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    if limit is not None:
        sessions = sessions[:limit]

    return HistoryResponse(
        sessions=[SessionResultResponse(**s.to_dict()) for s in sessions],
        count=len(sessions),
    )
