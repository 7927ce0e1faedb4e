"""Core data model for the exam engine.

Types:
- Difficulty: four ordered tiers (NB < TH < VD < VDC)
- QuestionType: MCQ, Essay, TF, SA
- QuestionRecord: one immutable question from the pool
- ExamConfig: a single composition request
- ComposedExam: ordered question snapshot produced by the composer
- SessionResult: summary record persisted to the session history

Persisted shapes use the camelCase keys of the pool/history documents.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# =============================================================================
# ENUMS
# =============================================================================


class Difficulty(str, Enum):
    """Difficulty tier, ordered from plain recall to high application."""

    RECALL = "NB"
    COMPREHENSION = "TH"
    APPLICATION = "VD"
    HIGH_APPLICATION = "VDC"

    @property
    def rank(self) -> int:
        """Position of the tier in ascending order (0-3)."""
        return _DIFFICULTY_ORDER.index(self)

    @property
    def label(self) -> str:
        """Localized display label."""
        return DIFFICULTY_LABELS[self.value]


_DIFFICULTY_ORDER = (
    Difficulty.RECALL,
    Difficulty.COMPREHENSION,
    Difficulty.APPLICATION,
    Difficulty.HIGH_APPLICATION,
)

DIFFICULTY_LABELS: dict[str, str] = {
    "NB": "Nhận biết",
    "TH": "Thông hiểu",
    "VD": "Vận dụng",
    "VDC": "Vận dụng cao",
}


class QuestionType(str, Enum):
    """Question type as coded in the pool document."""

    MULTIPLE_CHOICE = "MCQ"
    ESSAY = "Essay"
    TRUE_FALSE = "TF"
    SHORT_ANSWER = "SA"


TYPE_LABELS: dict[str, str] = {
    "MCQ": "Trắc nghiệm",
    "Essay": "Tự luận",
    "TF": "Đúng/Sai",
    "SA": "Trả lời ngắn",
}


class ExamMode(str, Enum):
    """Composition mode: fixed tier ratio or free filter."""

    STANDARD = "Standard"
    CUSTOM = "Custom"


class CompositionError(str, Enum):
    """Expected boundary conditions reported by composition, never raised."""

    NO_MATCHING_QUESTIONS = "NoMatchingQuestions"
    INSUFFICIENT_POOL = "InsufficientPool"
    INSUFFICIENT_TIER = "InsufficientTier"


# Unknown tiers sort after every known one
UNKNOWN_TIER_RANK = len(_DIFFICULTY_ORDER)

MAX_OPTIONS = 26

_OPTION_LABEL_RE = re.compile(r"^([A-Z])\.")


def difficulty_rank(difficulty: Any) -> int:
    """Sort key for a difficulty value, unknown tiers last."""
    if isinstance(difficulty, Difficulty):
        return difficulty.rank
    return UNKNOWN_TIER_RANK


def option_label(option: str, index: int) -> str:
    """Label of a choice: its embedded "X." prefix, else its position letter."""
    match = _OPTION_LABEL_RE.match(option)
    if match:
        return match.group(1)
    return chr(ord("A") + index)


def option_text(option: str) -> str:
    """Choice text without its embedded label prefix."""
    return _OPTION_LABEL_RE.sub("", option, count=1).lstrip()


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass(frozen=True)
class QuestionRecord:
    """A single question of the pool."""

    id: str
    content: str
    type: QuestionType = QuestionType.MULTIPLE_CHOICE
    difficulty: Difficulty = Difficulty.RECALL
    options: tuple[str, ...] = ()
    correct_answer: str | None = None
    explanation: str | None = None

    @property
    def option_labels(self) -> list[str]:
        """Labels (A, B, ...) of the choices in display order."""
        return [option_label(opt, idx) for idx, opt in enumerate(self.options)]

    def to_dict(self) -> dict[str, Any]:
        """Convert to the pool document shape."""
        result: dict[str, Any] = {
            "id": self.id,
            "content": self.content,
            "type": self.type.value,
            "difficulty": self.difficulty.value,
        }
        if self.options:
            result["options"] = list(self.options)
        if self.correct_answer is not None:
            result["correctAnswer"] = self.correct_answer
        if self.explanation:
            result["explanation"] = self.explanation
        return result


@dataclass(frozen=True)
class ExamConfig:
    """One composition request.

    difficulty_filter=None means every tier. type_filter is only used in
    custom mode; an empty set matches nothing.
    """

    mode: ExamMode = ExamMode.STANDARD
    requested_count: int = 30
    duration_seconds: int = 45 * 60
    difficulty_filter: Difficulty | None = None
    type_filter: frozenset[QuestionType] = field(
        default_factory=lambda: frozenset(QuestionType)
    )

    def __post_init__(self) -> None:
        if self.requested_count <= 0:
            raise ValueError(f"requested_count must be positive, got {self.requested_count}")
        if self.duration_seconds <= 0:
            raise ValueError(f"duration_seconds must be positive, got {self.duration_seconds}")
        # Accept any iterable of types from callers
        if not isinstance(self.type_filter, frozenset):
            object.__setattr__(self, "type_filter", frozenset(self.type_filter))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "mode": self.mode.value,
            "requested_count": self.requested_count,
            "duration_seconds": self.duration_seconds,
            "difficulty": self.difficulty_filter.value if self.difficulty_filter else "ALL",
            "types": sorted(t.value for t in self.type_filter),
        }


@dataclass(frozen=True)
class ComposedExam:
    """Ordered, deduplicated question snapshot for one session."""

    questions: tuple[QuestionRecord, ...]
    config: ExamConfig

    def __len__(self) -> int:
        return len(self.questions)

    @property
    def question_ids(self) -> list[str]:
        return [q.id for q in self.questions]

    def get(self, question_id: str) -> QuestionRecord | None:
        """Look up a question of this exam by id."""
        for question in self.questions:
            if question.id == question_id:
                return question
        return None


@dataclass(frozen=True)
class SessionResult:
    """Summary of one completed session, as stored in the history."""

    timestamp: int
    score: int
    total_questions: int
    time_spent: int
    mode: ExamMode
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted history record shape."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "score": self.score,
            "totalQuestions": self.total_questions,
            "timeSpent": self.time_spent,
            "mode": self.mode.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionResult:
        """Build from a persisted history record.

        Raises:
            KeyError: If a required field is missing
            ValueError: If mode or a numeric field is invalid
        """
        return cls(
            id=str(data["id"]),
            timestamp=int(data["timestamp"]),
            score=int(data["score"]),
            total_questions=int(data["totalQuestions"]),
            time_spent=int(data["timeSpent"]),
            mode=ExamMode(data["mode"]),
        )
