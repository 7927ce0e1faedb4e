"""Tier distribution for standard-mode exams.

Responsibilities:
- Count available questions per ratio category (NB, TH, VD+VDC)
- Compute the maximum total reachable under the ratio (the bottleneck)
- Split a requested total into per-category quotas that sum exactly

Ratios are integer percentages so every computation is exact:
max_feasible = min(count * 100 // percent) over the categories.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, NamedTuple

import structlog

from exambank.core.models import CompositionError, Difficulty, QuestionRecord

logger = structlog.get_logger(__name__)

# =============================================================================
# TYPES
# =============================================================================


class CategoryCounts(NamedTuple):
    """Question counts per ratio category."""

    recall: int
    comprehension: int
    application: int  # Application + HighApplication


class Ratio(NamedTuple):
    """Target share of each category, in percent."""

    recall: int
    comprehension: int
    application: int


STANDARD_RATIO = Ratio(recall=50, comprehension=30, application=20)


@dataclass
class DistributionResult:
    """Result of a distribution computation."""

    success: bool
    quotas: CategoryCounts | None
    max_feasible: int
    requested_total: int
    message: str
    error: CompositionError | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def clamped(self) -> bool:
        """True when the requested total was reduced to the feasible maximum."""
        return self.success and self.requested_total > self.max_feasible

    @property
    def total(self) -> int:
        return sum(self.quotas) if self.quotas else 0


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def round_half_up(numerator: int, denominator: int) -> int:
    """Round numerator/denominator to the nearest integer, halves up."""
    return (2 * numerator + denominator) // (2 * denominator)


def _validate_ratio(ratio: Iterable[int]) -> None:
    values = list(ratio)
    if any(v <= 0 for v in values):
        raise ValueError(f"Ratio entries must be positive: {values}")
    if sum(values) != 100:
        raise ValueError(f"Ratio must sum to 100, got {sum(values)}: {values}")


def category_of(difficulty: Difficulty) -> str:
    """Map a difficulty tier to its ratio category name."""
    if difficulty is Difficulty.RECALL:
        return "recall"
    if difficulty is Difficulty.COMPREHENSION:
        return "comprehension"
    return "application"


def category_counts(pool: Iterable[QuestionRecord]) -> CategoryCounts:
    """Count the pool per ratio category."""
    counts = {"recall": 0, "comprehension": 0, "application": 0}
    for question in pool:
        counts[category_of(question.difficulty)] += 1
    return CategoryCounts(**counts)


# =============================================================================
# MAIN FUNCTIONS
# =============================================================================


def max_feasible_total(counts: CategoryCounts, ratio: Ratio = STANDARD_RATIO) -> int:
    """Largest total whose ratio split fits in the available counts.

    Any category with zero questions yields 0.
    """
    _validate_ratio(ratio)
    return min(count * 100 // percent for count, percent in zip(counts, ratio))


def split_quota(total: int, ratio: Ratio = STANDARD_RATIO) -> CategoryCounts:
    """Split total into (NB, TH, VD) quotas.

    NB and TH are rounded half-up; VD absorbs the remainder so the
    quotas always sum to total.
    """
    _validate_ratio(ratio)
    if total < 0:
        raise ValueError(f"total must not be negative, got {total}")
    recall = round_half_up(total * ratio.recall, 100)
    comprehension = round_half_up(total * ratio.comprehension, 100)
    return CategoryCounts(
        recall=recall,
        comprehension=comprehension,
        application=total - recall - comprehension,
    )


def compute_distribution(
    counts: CategoryCounts,
    requested_total: int,
    ratio: Ratio = STANDARD_RATIO,
) -> DistributionResult:
    """Compute per-category quotas for a standard-mode request.

    Args:
        counts: Available questions per category
        requested_total: Desired exam size
        ratio: Category shares in percent (default 50/30/20)

    Returns:
        DistributionResult with quotas for min(requested_total, max_feasible),
        or an INSUFFICIENT_POOL failure when nothing can be composed
    """
    max_feasible = max_feasible_total(counts, ratio)

    if max_feasible == 0:
        missing = [name for name, count in counts._asdict().items() if count == 0]
        logger.info(
            "distribution_insufficient_pool",
            counts=counts._asdict(),
            missing=missing,
        )
        return DistributionResult(
            success=False,
            quotas=None,
            max_feasible=0,
            requested_total=requested_total,
            message=(
                "Not enough questions for the standard ratio "
                f"(missing categories: {', '.join(missing) or 'none'})"
            ),
            error=CompositionError.INSUFFICIENT_POOL,
        )

    total = min(requested_total, max_feasible)
    quotas = split_quota(total, ratio)

    warnings: list[str] = []
    if requested_total > max_feasible:
        warnings.append(
            f"Requested {requested_total} questions, only {max_feasible} feasible"
        )

    logger.debug(
        "distribution_computed",
        requested=requested_total,
        max_feasible=max_feasible,
        quotas=quotas._asdict(),
    )

    return DistributionResult(
        success=True,
        quotas=quotas,
        max_feasible=max_feasible,
        requested_total=requested_total,
        message=f"{total} questions: {quotas.recall}/{quotas.comprehension}/{quotas.application}",
        warnings=warnings,
    )
