"""Pydantic schemas for the Web API.

Serialization models for pool, distribution, exam session and history.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from exambank.core.models import Difficulty, ExamMode, QuestionType


# =============================================================================
# POOL SCHEMAS
# =============================================================================


class PoolStatsResponse(BaseModel):
    """Breakdown of the loaded pool."""

    total: int
    by_difficulty: dict[str, int]
    by_type: dict[str, int]
    standard_max: int


class DistributionResponse(BaseModel):
    """Standard-mode quotas for a requested size."""

    requested: int
    max_feasible: int
    clamped: bool
    recall: int
    comprehension: int
    application: int


# =============================================================================
# EXAM SCHEMAS
# =============================================================================


class ExamStartRequest(BaseModel):
    """Request body for composing a new exam."""

    mode: ExamMode = ExamMode.STANDARD
    requested_count: int = Field(default=30, ge=1)
    duration_minutes: int = Field(default=45, ge=1)
    difficulty: Difficulty | None = None
    types: list[QuestionType] = Field(default_factory=lambda: list(QuestionType))
    seed: int | None = None


class QuestionResponse(BaseModel):
    """A question as shown to the candidate (no answer key)."""

    id: str
    content: str
    type: QuestionType
    difficulty: Difficulty
    options: list[str] = Field(default_factory=list)


class AnswerRequest(BaseModel):
    """Answer for one question."""

    answer: str = Field(..., max_length=2000)


class QuestionGradeResponse(BaseModel):
    """Grade of one question."""

    question_id: str
    is_correct: bool | None
    given_answer: str | None = None
    expected_answer: str | None = None
    explanation: str | None = None


class GradeReportResponse(BaseModel):
    """Grading summary."""

    score_raw: int
    total_questions: int
    display_score: int
    percentage: int
    rating: str
    results: list[QuestionGradeResponse]


class ExamSessionResponse(BaseModel):
    """Current state of the exam session."""

    state: str
    mode: ExamMode | None = None
    requested_count: int | None = None
    clamped: bool = False
    questions: list[QuestionResponse] = Field(default_factory=list)
    answers: dict[str, str] = Field(default_factory=dict)
    remaining_seconds: int = 0
    feedback: dict[str, QuestionGradeResponse] = Field(default_factory=dict)
    report: GradeReportResponse | None = None
    save_error: str | None = None


# =============================================================================
# HISTORY SCHEMAS
# =============================================================================


class SessionResultResponse(BaseModel):
    """A stored session result (persisted record shape)."""

    id: str
    timestamp: int
    score: int
    totalQuestions: int
    timeSpent: int
    mode: ExamMode


class HistoryResponse(BaseModel):
    """Stored session results, newest first."""

    sessions: list[SessionResultResponse]
    count: int


# =============================================================================
# HEALTH SCHEMAS
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class ErrorDetail(BaseModel):
    """Composition failure detail."""

    error: str
    message: str
    extra: dict[str, Any] = Field(default_factory=dict)
