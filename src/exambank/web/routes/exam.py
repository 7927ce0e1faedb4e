"""Exam session endpoints.

There is no client-side timer contract: every call first submits the
running exam if its time budget is spent.
"""

from fastapi import APIRouter, HTTPException, status

from exambank.core.exam_composer import CompositionResult
from exambank.core.exam_session import SessionSnapshot, SessionStateError
from exambank.core.history_repository import HistoryStoreError
from exambank.core.models import ExamConfig
from exambank.web.exam_service import ExamService, PoolNotLoadedError, get_exam_service
from exambank.web.schemas import (
    AnswerRequest,
    ErrorDetail,
    ExamSessionResponse,
    ExamStartRequest,
    GradeReportResponse,
    QuestionGradeResponse,
    QuestionResponse,
)

router = APIRouter(prefix="/api/exam", tags=["exam"])


def _session_response(service: ExamService) -> ExamSessionResponse:
    snapshot: SessionSnapshot = service.session.snapshot
    composition = snapshot.last_composition

    questions = []
    if snapshot.exam is not None:
        questions = [
            QuestionResponse(
                id=q.id,
                content=q.content,
                type=q.type,
                difficulty=q.difficulty,
                options=list(q.options),
            )
            for q in snapshot.exam.questions
        ]

    # Practice mode reveals the key for locked answers
    feedback = {}
    for question_id in snapshot.answers:
        grade = service.session.feedback(question_id)
        if grade is not None:
            feedback[question_id] = QuestionGradeResponse(**grade.to_dict())

    report = None
    if snapshot.report is not None:
        report = GradeReportResponse(
            score_raw=snapshot.report.score_raw,
            total_questions=snapshot.report.total_questions,
            display_score=snapshot.report.display_score,
            percentage=snapshot.report.percentage,
            rating=snapshot.report.rating,
            results=[
                QuestionGradeResponse(**grade.to_dict())
                for grade in snapshot.report.results
            ],
        )

    return ExamSessionResponse(
        state=snapshot.state.name,
        mode=snapshot.config.mode if snapshot.config else None,
        requested_count=snapshot.config.requested_count if snapshot.config else None,
        clamped=bool(composition and composition.success and composition.clamped),
        questions=questions,
        answers=dict(snapshot.answers),
        remaining_seconds=service.session.remaining_seconds(),
        feedback=feedback,
        report=report,
        save_error=snapshot.save_error,
    )


def _raise_composition_error(result: CompositionResult) -> None:
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=ErrorDetail(
            error=result.error.value if result.error else "unknown",
            message=result.message,
            extra={"max_feasible": result.max_feasible},
        ).model_dump(),
    )


def _raise_history_error(service: ExamService, error: HistoryStoreError) -> None:
    report = service.session.snapshot.report
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=ErrorDetail(
            error="HistoryStoreError",
            message=f"Exam graded but the result was not saved: {error}",
            extra={"report": report.to_dict() if report else None},
        ).model_dump(),
    )


def _submit_if_expired(service: ExamService) -> None:
    try:
        service.submit_if_expired()
    except HistoryStoreError as e:
        _raise_history_error(service, e)


@router.post("", response_model=ExamSessionResponse, status_code=status.HTTP_201_CREATED)
async def start_exam(request: ExamStartRequest) -> ExamSessionResponse:
    """Compose a new exam, replacing any session in progress."""
    service = get_exam_service()
    config = ExamConfig(
        mode=request.mode,
        requested_count=request.requested_count,
        duration_seconds=request.duration_minutes * 60,
        difficulty_filter=request.difficulty,
        type_filter=frozenset(request.types),
    )

    try:
        result = service.start_exam(config, seed=request.seed)
    except PoolNotLoadedError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not result.success:
        _raise_composition_error(result)

    return _session_response(service)


@router.get("", response_model=ExamSessionResponse)
async def get_exam() -> ExamSessionResponse:
    """Current session snapshot."""
    service = get_exam_service()
    _submit_if_expired(service)
    return _session_response(service)


@router.put("/answers/{question_id}", response_model=ExamSessionResponse)
async def record_answer(question_id: str, request: AnswerRequest) -> ExamSessionResponse:
    """Record an answer. Locked answers in custom mode are left as they are."""
    service = get_exam_service()
    _submit_if_expired(service)
    try:
        service.session.record_answer(question_id, request.answer)
    except SessionStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except KeyError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Question '{question_id}' is not part of the exam",
        )
    return _session_response(service)


@router.post("/submit", response_model=ExamSessionResponse)
async def submit_exam() -> ExamSessionResponse:
    """Grade the running exam and store the result."""
    service = get_exam_service()
    try:
        if not service.submit_if_expired():
            service.session.submit()
    except SessionStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except HistoryStoreError as e:
        _raise_history_error(service, e)
    return _session_response(service)


@router.post("/retry", response_model=ExamSessionResponse, status_code=status.HTTP_201_CREATED)
async def retry_exam(seed: int | None = None) -> ExamSessionResponse:
    """Start again with the previous configuration."""
    service = get_exam_service()
    try:
        result = service.retry_exam(seed=seed)
    except SessionStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    if not result.success:
        _raise_composition_error(result)

    return _session_response(service)
