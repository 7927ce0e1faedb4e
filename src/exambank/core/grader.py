"""Exam grading module.

Responsibilities:
- Normalize label-style answers ("a.", " A ", "A" are the same answer)
- Auto-grade multiple choice questions that carry an answer key
- Leave every other question out of automatic scoring
- Summarize the session as raw score, 10-point score and percentage

The 10-point score and percentage divide by the whole exam size, not only
by the auto-gradable questions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping

import structlog

from exambank.core.distribution import round_half_up
from exambank.core.models import ComposedExam, QuestionRecord, QuestionType

logger = structlog.get_logger(__name__)

# =============================================================================
# TYPES
# =============================================================================

Rating = Literal["excellent", "pass", "needs_work"]

EXCELLENT_THRESHOLD = 80
PASSING_THRESHOLD = 50

# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass(frozen=True)
class QuestionGrade:
    """Grade for a single question.

    is_correct is None for questions excluded from automatic scoring.
    """

    question_id: str
    is_correct: bool | None
    given_answer: str | None = None
    expected_answer: str | None = None
    explanation: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "question_id": self.question_id,
            "is_correct": self.is_correct,
            "given_answer": self.given_answer,
            "expected_answer": self.expected_answer,
            "explanation": self.explanation,
        }


@dataclass(frozen=True)
class GradeReport:
    """Grading summary for one submitted session."""

    results: tuple[QuestionGrade, ...]
    score_raw: int
    total_questions: int
    display_score: int
    percentage: int
    rating: Rating

    @property
    def per_question_correct(self) -> dict[str, bool | None]:
        return {r.question_id: r.is_correct for r in self.results}

    @property
    def scorable_count(self) -> int:
        return sum(1 for r in self.results if r.is_correct is not None)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "score_raw": self.score_raw,
            "total_questions": self.total_questions,
            "display_score": self.display_score,
            "percentage": self.percentage,
            "rating": self.rating,
            "results": [r.to_dict() for r in self.results],
        }


# =============================================================================
# GRADING FUNCTIONS
# =============================================================================


def normalize_answer(raw: Any) -> str:
    """Canonical form of a label-style answer.

    Trims surrounding whitespace, removes every ".", uppercases.
    None and empty values normalize to "".
    """
    if raw is None:
        return ""
    return str(raw).strip().replace(".", "").upper()


def is_auto_gradable(question: QuestionRecord) -> bool:
    """Only multiple choice questions with an answer key are auto-graded."""
    return question.type is QuestionType.MULTIPLE_CHOICE and bool(question.correct_answer)


def grade_question(question: QuestionRecord, raw_answer: str | None) -> QuestionGrade:
    """Grade one question; a missing answer is incorrect, never an error."""
    if not is_auto_gradable(question):
        return QuestionGrade(
            question_id=question.id,
            is_correct=None,
            given_answer=raw_answer,
            expected_answer=question.correct_answer,
            explanation=question.explanation,
        )

    given = normalize_answer(raw_answer)
    expected = normalize_answer(question.correct_answer)
    return QuestionGrade(
        question_id=question.id,
        is_correct=bool(given) and given == expected,
        given_answer=raw_answer,
        expected_answer=question.correct_answer,
        explanation=question.explanation,
    )


def rate_percentage(
    percentage: int,
    excellent: int = EXCELLENT_THRESHOLD,
    passing: int = PASSING_THRESHOLD,
) -> Rating:
    """Qualitative rating for a percentage score."""
    if percentage >= excellent:
        return "excellent"
    if percentage >= passing:
        return "pass"
    return "needs_work"


# =============================================================================
# MAIN FUNCTION
# =============================================================================


def grade_session(
    exam: ComposedExam,
    answers: Mapping[str, str | None],
    excellent: int = EXCELLENT_THRESHOLD,
    passing: int = PASSING_THRESHOLD,
) -> GradeReport:
    """Grade submitted answers against a composed exam.

    Args:
        exam: The composed exam
        answers: question_id -> raw answer; absent ids count as unanswered
        excellent: Percentage for the "excellent" rating
        passing: Percentage for the "pass" rating

    Returns:
        GradeReport with per-question results in exam order
    """
    exam_ids = set(exam.question_ids)
    unknown = [qid for qid in answers if qid not in exam_ids]
    if unknown:
        logger.warning("grading_unknown_answers_ignored", question_ids=unknown)

    results = tuple(grade_question(q, answers.get(q.id)) for q in exam.questions)

    score_raw = sum(1 for r in results if r.is_correct is True)
    total = len(results)
    if total:
        display_score = round_half_up(score_raw * 10, total)
        percentage = round_half_up(score_raw * 100, total)
    else:
        display_score = 0
        percentage = 0

    report = GradeReport(
        results=results,
        score_raw=score_raw,
        total_questions=total,
        display_score=display_score,
        percentage=percentage,
        rating=rate_percentage(percentage, excellent, passing),
    )

    logger.info(
        "session_graded",
        score_raw=score_raw,
        total=total,
        display_score=display_score,
        scorable=report.scorable_count,
    )
    return report
