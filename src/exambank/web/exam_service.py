"""Exam service for the Web API.

Holds the loaded pool and the single active exam session. Starting a new
exam replaces the previous one; there is no multi-user support.
"""

from __future__ import annotations

import random
import time
from collections import Counter
from pathlib import Path
from typing import Any, Callable

import structlog

from exambank.config.app_config import AppConfig, load_app_config
from exambank.core.distribution import (
    DistributionResult,
    category_counts,
    compute_distribution,
    max_feasible_total,
)
from exambank.core.exam_composer import CompositionResult
from exambank.core.exam_session import ExamSession
from exambank.core.history_repository import SessionHistoryStore
from exambank.core.models import Difficulty, ExamConfig, QuestionRecord, QuestionType
from exambank.core.question_loader import parse_question_pool

logger = structlog.get_logger(__name__)


class PoolNotLoadedError(Exception):
    """No question pool has been loaded yet."""

    pass


class ExamService:
    """Pool plus one ExamSession, shared by the API routes."""

    def __init__(
        self,
        config: AppConfig,
        data_dir: Path,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.history = SessionHistoryStore(config.history_path(data_dir))
        self.session = ExamSession(
            history=self.history,
            clock=clock,
            excellent=config.rating.excellent,
            passing=config.rating.passing,
            ratio=config.standard_ratio,
        )
        self._pool: list[QuestionRecord] = []

    @property
    def pool(self) -> list[QuestionRecord]:
        if not self._pool:
            raise PoolNotLoadedError("Load a question pool first")
        return self._pool

    def load_pool(self, document: Any) -> list[QuestionRecord]:
        """Replace the pool; the active session is discarded.

        Raises:
            PoolParseError: If the document is malformed
        """
        self._pool = parse_question_pool(document)
        self.session.reset()
        logger.info("pool_loaded", count=len(self._pool))
        return self._pool

    def pool_stats(self) -> dict[str, Any]:
        pool = self.pool
        by_tier = Counter(q.difficulty for q in pool)
        by_type = Counter(q.type for q in pool)
        standard_max = max_feasible_total(category_counts(pool), self.config.standard_ratio)
        return {
            "total": len(pool),
            "by_difficulty": {d.value: by_tier.get(d, 0) for d in Difficulty},
            "by_type": {t.value: by_type.get(t, 0) for t in QuestionType},
            "standard_max": standard_max,
        }

    def distribution(self, requested: int) -> DistributionResult:
        return compute_distribution(
            category_counts(self.pool), requested, self.config.standard_ratio
        )

    def start_exam(self, config: ExamConfig, seed: int | None = None) -> CompositionResult:
        return self.session.start(self.pool, config, random.Random(seed))

    def retry_exam(self, seed: int | None = None) -> CompositionResult:
        return self.session.retry(random.Random(seed))

    def submit_if_expired(self) -> bool:
        """Submit the running exam once its time budget is spent.

        Raises:
            HistoryStoreError: If the result could not be stored
        """
        if not self.session.is_expired():
            return False
        logger.info("exam_time_expired")
        self.session.submit()
        return True


# Global service instance
_exam_service: ExamService | None = None


def get_exam_service() -> ExamService:
    """Get the global exam service instance."""
    global _exam_service
    if _exam_service is None:
        import os

        data_dir = Path(os.environ.get("EXAMBANK_DATA_DIR", "data"))
        config = load_app_config(config_file=data_dir / "config" / "exambank_v1.yaml")
        _exam_service = ExamService(config, data_dir)
    return _exam_service


def reset_exam_service() -> None:
    """Reset the exam service (for testing)."""
    global _exam_service
    _exam_service = None
