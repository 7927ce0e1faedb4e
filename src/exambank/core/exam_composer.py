"""Exam composition module.

Responsibilities:
- Compose custom-mode exams from a difficulty/type filter
- Compose standard-mode exams under the 50/30/20 tier ratio
- Compose matrix exams with explicit per-tier counts (admin export)
- Export a composed exam as a pool document

Every shuffle takes an injected random.Random so composition is
reproducible with a seeded source. The pool is never mutated.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Sequence, TypeVar

import structlog

from exambank.core.distribution import (
    STANDARD_RATIO,
    Ratio,
    category_counts,
    category_of,
    compute_distribution,
    round_half_up,
)
from exambank.core.models import (
    ComposedExam,
    CompositionError,
    Difficulty,
    ExamConfig,
    ExamMode,
    QuestionRecord,
    difficulty_rank,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# 40/30/20/10 over NB/TH/VD/VDC
MATRIX_RATIO: dict[Difficulty, int] = {
    Difficulty.RECALL: 40,
    Difficulty.COMPREHENSION: 30,
    Difficulty.APPLICATION: 20,
    Difficulty.HIGH_APPLICATION: 10,
}

# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class CompositionResult:
    """Result of exam composition."""

    success: bool
    exam: ComposedExam | None
    requested_count: int
    message: str
    error: CompositionError | None = None
    max_feasible: int | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def delivered_count(self) -> int:
        return len(self.exam.questions) if self.exam is not None else 0

    @property
    def clamped(self) -> bool:
        """True when fewer questions than requested were delivered."""
        return self.success and self.delivered_count < self.requested_count


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def shuffle_questions(items: Sequence[T], rng: random.Random) -> list[T]:
    """Return a uniformly shuffled copy of items (Fisher-Yates)."""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = rng.randint(0, i)
        result[i], result[j] = result[j], result[i]
    return result


def _dedupe(questions: Iterable[QuestionRecord]) -> list[QuestionRecord]:
    """Drop repeated ids, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[QuestionRecord] = []
    for question in questions:
        if question.id in seen:
            logger.warning("duplicate_question_dropped", question_id=question.id)
            continue
        seen.add(question.id)
        unique.append(question)
    return unique


def _matches_filter(question: QuestionRecord, config: ExamConfig) -> bool:
    if config.difficulty_filter is not None and question.difficulty != config.difficulty_filter:
        return False
    return question.type in config.type_filter


def filter_pool(pool: Iterable[QuestionRecord], config: ExamConfig) -> list[QuestionRecord]:
    """Questions matching the custom-mode difficulty and type filter."""
    return [q for q in _dedupe(pool) if _matches_filter(q, config)]


def max_custom_count(pool: Iterable[QuestionRecord], config: ExamConfig) -> int:
    """Feasible limit for a custom-mode request (size of the filtered set)."""
    return len(filter_pool(pool, config))


def sort_by_difficulty(questions: Iterable[QuestionRecord]) -> list[QuestionRecord]:
    """Stable ascending sort by tier; unknown tiers go last."""
    return sorted(questions, key=lambda q: difficulty_rank(q.difficulty))


# =============================================================================
# COMPOSITION
# =============================================================================


def _compose_custom(
    pool: Sequence[QuestionRecord],
    config: ExamConfig,
    rng: random.Random,
) -> CompositionResult:
    filtered = filter_pool(pool, config)

    if not filtered:
        logger.info(
            "exam_no_matching_questions",
            difficulty=config.difficulty_filter.value if config.difficulty_filter else "ALL",
            types=sorted(t.value for t in config.type_filter),
        )
        return CompositionResult(
            success=False,
            exam=None,
            requested_count=config.requested_count,
            message="No questions match the selected difficulty and types",
            error=CompositionError.NO_MATCHING_QUESTIONS,
            max_feasible=0,
        )

    selected = shuffle_questions(filtered, rng)[: config.requested_count]
    exam = ComposedExam(questions=tuple(selected), config=config)

    warnings: list[str] = []
    if len(selected) < config.requested_count:
        warnings.append(
            f"Only {len(filtered)} questions match, requested {config.requested_count}"
        )

    return CompositionResult(
        success=True,
        exam=exam,
        requested_count=config.requested_count,
        message=f"Composed {len(selected)} questions (custom)",
        max_feasible=len(filtered),
        warnings=warnings,
    )


def _compose_standard(
    pool: Sequence[QuestionRecord],
    config: ExamConfig,
    rng: random.Random,
    ratio: Ratio,
) -> CompositionResult:
    unique = _dedupe(pool)
    distribution = compute_distribution(category_counts(unique), config.requested_count, ratio)

    if not distribution.success or distribution.quotas is None:
        return CompositionResult(
            success=False,
            exam=None,
            requested_count=config.requested_count,
            message=distribution.message,
            error=distribution.error,
            max_feasible=0,
        )

    buckets: dict[str, list[QuestionRecord]] = {
        "recall": [],
        "comprehension": [],
        "application": [],
    }
    for question in unique:
        buckets[category_of(question.difficulty)].append(question)

    selected: list[QuestionRecord] = []
    for name, quota in distribution.quotas._asdict().items():
        selected.extend(shuffle_questions(buckets[name], rng)[:quota])

    exam = ComposedExam(questions=tuple(sort_by_difficulty(selected)), config=config)

    return CompositionResult(
        success=True,
        exam=exam,
        requested_count=config.requested_count,
        message=f"Composed {len(exam.questions)} questions (standard {distribution.message})",
        max_feasible=distribution.max_feasible,
        warnings=list(distribution.warnings),
    )


def compose_exam(
    pool: Sequence[QuestionRecord],
    config: ExamConfig,
    rng: random.Random | None = None,
    ratio: Ratio = STANDARD_RATIO,
) -> CompositionResult:
    """Compose an exam from the pool.

    Calling again with the same config reshuffles; it does not replay.

    Args:
        pool: Full question pool (read-only)
        config: Composition request
        rng: Random source; a fresh unseeded one is used when omitted
        ratio: Category shares for standard mode

    Returns:
        CompositionResult with the exam, or NO_MATCHING_QUESTIONS (custom)
        / INSUFFICIENT_POOL (standard). A reduced size is reported through
        the clamped flag.
    """
    if rng is None:
        rng = random.Random()

    if config.mode is ExamMode.CUSTOM:
        result = _compose_custom(pool, config, rng)
    else:
        result = _compose_standard(pool, config, rng, ratio)

    if result.success:
        logger.info(
            "exam_composed",
            mode=config.mode.value,
            requested=config.requested_count,
            delivered=result.delivered_count,
            clamped=result.clamped,
        )
    return result


# =============================================================================
# MATRIX EXPORT
# =============================================================================


def suggest_matrix(
    total: int,
    ratio: Mapping[Difficulty, int] = MATRIX_RATIO,
) -> dict[Difficulty, int]:
    """Suggested per-tier counts for a total; VDC takes the remainder."""
    tiers = list(Difficulty)
    matrix = {tier: round_half_up(total * ratio[tier], 100) for tier in tiers[:-1]}
    matrix[tiers[-1]] = max(0, total - sum(matrix.values()))
    return matrix


def compose_matrix_exam(
    pool: Sequence[QuestionRecord],
    matrix: Mapping[Difficulty, int],
    rng: random.Random | None = None,
    duration_seconds: int = 45 * 60,
) -> CompositionResult:
    """Compose an exam with an exact number of questions per tier.

    Questions come out grouped by tier in ascending order.
    """
    if rng is None:
        rng = random.Random()

    total = sum(matrix.values())
    unique = _dedupe(pool)
    by_tier: dict[Difficulty, list[QuestionRecord]] = {tier: [] for tier in Difficulty}
    for question in unique:
        by_tier[question.difficulty].append(question)

    for tier in Difficulty:
        needed = matrix.get(tier, 0)
        if needed < 0:
            raise ValueError(f"Negative count for {tier.value}: {needed}")
        available = len(by_tier[tier])
        if needed > available:
            logger.info(
                "matrix_insufficient_tier",
                tier=tier.value,
                needed=needed,
                available=available,
            )
            return CompositionResult(
                success=False,
                exam=None,
                requested_count=total,
                message=f"Not enough {tier.label} questions (need {needed}, have {available})",
                error=CompositionError.INSUFFICIENT_TIER,
            )

    if total == 0:
        raise ValueError("Matrix must request at least one question")

    selected: list[QuestionRecord] = []
    for tier in Difficulty:
        selected.extend(shuffle_questions(by_tier[tier], rng)[: matrix.get(tier, 0)])

    config = ExamConfig(
        mode=ExamMode.STANDARD,
        requested_count=total,
        duration_seconds=duration_seconds,
    )
    exam = ComposedExam(questions=tuple(selected), config=config)
    logger.info("matrix_exam_composed", total=total)

    return CompositionResult(
        success=True,
        exam=exam,
        requested_count=total,
        message=f"Composed {total} questions (matrix)",
        max_feasible=total,
    )


def export_exam_document(
    exam: ComposedExam,
    title: str,
    duration_minutes: int,
    created_at: str | None = None,
) -> dict[str, Any]:
    """Exam as a pool document that the question loader reads back."""
    return {
        "title": title,
        "duration": duration_minutes,
        "createdAt": created_at or datetime.now(timezone.utc).isoformat(),
        "questionCount": len(exam.questions),
        "questions": [q.to_dict() for q in exam.questions],
    }
