"""Exam session state machine.

One session at a time moves through:

    IDLE -> COMPOSING -> RUNNING -> GRADING -> COMPLETED

Each transition publishes a new immutable SessionSnapshot. Starting a new
composition from any state discards the in-flight session. Submission is
accepted at any moment while RUNNING, with any number of answers
(including none, when the countdown runs out). Once the time budget is
spent no more answers are taken and the elapsed time stops at the budget.
"""

from __future__ import annotations

import math
import random
import time
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from types import MappingProxyType
from typing import Callable, Mapping, Sequence

import structlog

from exambank.core.distribution import STANDARD_RATIO, Ratio
from exambank.core.exam_composer import CompositionResult, compose_exam
from exambank.core.grader import (
    EXCELLENT_THRESHOLD,
    PASSING_THRESHOLD,
    GradeReport,
    QuestionGrade,
    grade_question,
    grade_session,
)
from exambank.core.history_repository import (
    HistoryStoreError,
    SessionHistoryStore,
    append_history,
)
from exambank.core.models import (
    ComposedExam,
    ExamConfig,
    ExamMode,
    QuestionRecord,
    SessionResult,
)

logger = structlog.get_logger(__name__)


class SessionState(Enum):
    """States of an exam session."""

    IDLE = auto()
    COMPOSING = auto()
    RUNNING = auto()
    GRADING = auto()
    COMPLETED = auto()


class SessionStateError(Exception):
    """Operation not allowed in the current session state."""

    def __init__(self, operation: str, state: SessionState):
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot {operation} while session is {state.name}")


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of the session at one point in time."""

    state: SessionState = SessionState.IDLE
    config: ExamConfig | None = None
    exam: ComposedExam | None = None
    answers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    started_at: float | None = None
    finished_at: float | None = None
    report: GradeReport | None = None
    result: SessionResult | None = None
    last_composition: CompositionResult | None = None
    save_error: str | None = None

    @property
    def answered_count(self) -> int:
        return len(self.answers)


class ExamSession:
    """Drives one exam from composition to a stored result.

    Args:
        history: Store that receives a SessionResult on every submission
        clock: Seconds since the epoch (time.time by default)
        excellent: Percentage for the "excellent" rating
        passing: Percentage for the "pass" rating
        ratio: Category shares for standard-mode composition
    """

    def __init__(
        self,
        history: SessionHistoryStore | None = None,
        clock: Callable[[], float] = time.time,
        excellent: int = EXCELLENT_THRESHOLD,
        passing: int = PASSING_THRESHOLD,
        ratio: Ratio = STANDARD_RATIO,
    ):
        self._history = history
        self._clock = clock
        self._excellent = excellent
        self._passing = passing
        self._ratio = ratio
        self._pool: tuple[QuestionRecord, ...] = ()
        self._snapshot = SessionSnapshot()

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    @property
    def state(self) -> SessionState:
        return self._snapshot.state

    def _require(self, operation: str, *states: SessionState) -> None:
        if self._snapshot.state not in states:
            raise SessionStateError(operation, self._snapshot.state)

    def _transition(self, **changes) -> SessionSnapshot:
        previous = self._snapshot.state
        self._snapshot = replace(self._snapshot, **changes)
        if self._snapshot.state is not previous:
            logger.debug(
                "session_transition",
                from_state=previous.name,
                to_state=self._snapshot.state.name,
            )
        return self._snapshot

    # -------------------------------------------------------------------------
    # Composition
    # -------------------------------------------------------------------------

    def start(
        self,
        pool: Sequence[QuestionRecord],
        config: ExamConfig,
        rng: random.Random | None = None,
    ) -> CompositionResult:
        """Compose a new exam and start the clock.

        Allowed from any state. On a composition failure the session goes
        back to IDLE and the failure is returned, not raised.
        """
        self._pool = tuple(pool)
        self._snapshot = SessionSnapshot(state=SessionState.COMPOSING, config=config)

        result = compose_exam(self._pool, config, rng, ratio=self._ratio)
        if not result.success:
            self._snapshot = SessionSnapshot(config=config, last_composition=result)
            logger.info("session_start_failed", error=result.error.value if result.error else None)
            return result

        self._transition(
            state=SessionState.RUNNING,
            exam=result.exam,
            started_at=self._clock(),
            last_composition=result,
        )
        logger.info(
            "session_started",
            mode=config.mode.value,
            questions=result.delivered_count,
            clamped=result.clamped,
        )
        return result

    def retry(self, rng: random.Random | None = None) -> CompositionResult:
        """Start again with the retained config; questions are reshuffled."""
        config = self._snapshot.config
        if config is None:
            raise SessionStateError("retry without a previous config", self._snapshot.state)
        return self.start(self._pool, config, rng)

    def reset(self) -> None:
        """Discard everything and go back to IDLE."""
        self._pool = ()
        self._snapshot = SessionSnapshot()

    # -------------------------------------------------------------------------
    # Running
    # -------------------------------------------------------------------------

    def record_answer(self, question_id: str, answer: str) -> bool:
        """Record an answer for a question of the running exam.

        In custom (practice) mode the first non-blank answer is final and
        later changes are ignored. Nothing is stored once time is up.

        Returns:
            True if the answer was stored

        Raises:
            KeyError: If the question is not part of the exam
        """
        self._require("record an answer", SessionState.RUNNING)
        exam = self._snapshot.exam
        if exam is None or exam.get(question_id) is None:
            raise KeyError(question_id)

        if self.is_expired():
            logger.info("answer_after_expiry_ignored", question_id=question_id)
            return False

        answers = self._snapshot.answers
        if exam.config.mode is ExamMode.CUSTOM:
            if question_id in answers or not answer.strip():
                return False

        self._transition(answers=MappingProxyType({**answers, question_id: answer}))
        return True

    def feedback(self, question_id: str) -> QuestionGrade | None:
        """Immediate feedback for a locked practice-mode answer.

        Returns None outside custom mode or before the question is answered.
        """
        exam = self._snapshot.exam
        if exam is None or exam.config.mode is not ExamMode.CUSTOM:
            return None
        question = exam.get(question_id)
        if question is None or question_id not in self._snapshot.answers:
            return None
        return grade_question(question, self._snapshot.answers[question_id])

    def elapsed_seconds(self) -> int:
        """Whole seconds since the start, never more than the time budget."""
        started = self._snapshot.started_at
        config = self._snapshot.config
        if started is None or config is None:
            return 0
        finished = self._snapshot.finished_at
        end = finished if finished is not None else self._clock()
        return min(config.duration_seconds, max(0, math.floor(end - started)))

    def remaining_seconds(self) -> int:
        config = self._snapshot.config
        if config is None or self._snapshot.started_at is None:
            return 0
        return max(0, config.duration_seconds - self.elapsed_seconds())

    def is_expired(self) -> bool:
        return self._snapshot.state is SessionState.RUNNING and self.remaining_seconds() == 0

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    def submit(self) -> GradeReport:
        """Grade whatever has been answered and store the session result.

        The session ends in COMPLETED with its report even when the history
        store fails; the failure is kept in snapshot.save_error and re-raised.

        Raises:
            SessionStateError: If no exam is running
            HistoryStoreError: If the result could not be stored
        """
        self._require("submit", SessionState.RUNNING)
        exam = self._snapshot.exam
        config = self._snapshot.config
        if exam is None or config is None:
            raise SessionStateError("submit without a composed exam", self._snapshot.state)

        self._transition(state=SessionState.GRADING, finished_at=self._clock())
        report = grade_session(
            exam,
            self._snapshot.answers,
            excellent=self._excellent,
            passing=self._passing,
        )

        finished_at = self._snapshot.finished_at or 0.0
        result = SessionResult(
            timestamp=int(finished_at * 1000),
            score=report.score_raw,
            total_questions=report.total_questions,
            time_spent=self.elapsed_seconds(),
            mode=config.mode,
        )
        self._transition(state=SessionState.COMPLETED, report=report, result=result)

        if self._history is not None:
            try:
                append_history(self._history, result)
            except HistoryStoreError as e:
                logger.error("session_result_not_saved", session_id=result.id, error=str(e))
                self._transition(save_error=str(e))
                raise

        logger.info(
            "session_completed",
            session_id=result.id,
            score=report.score_raw,
            total=report.total_questions,
            time_spent=result.time_spent,
        )
        return report
