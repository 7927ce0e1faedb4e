"""Question pool loader.

Responsibilities:
- Read a pool document (bare array, or object with a "questions" array)
- Resolve alternate field names into the strict QuestionRecord shape
- Reject unrecognized shapes with PoolParseError instead of guessing

Accepted per-question fields:
- id (optional, default "q-{index}")
- content | text (required)
- type (optional, default MCQ; code or name)
- difficulty (optional, default NB; code or localized label)
- options: list of strings, or list of {id, content} objects
- correctOptionId (int -> letter, str -> literal), falling back to correctAnswer
- explanation | solution | loigiai | loi_giai | guide | huongdan
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog

from exambank.core.models import (
    DIFFICULTY_LABELS,
    MAX_OPTIONS,
    Difficulty,
    QuestionRecord,
    QuestionType,
)

logger = structlog.get_logger(__name__)

EXPLANATION_FIELDS = ("explanation", "solution", "loigiai", "loi_giai", "guide", "huongdan")

_DIFFICULTY_ALIASES: dict[str, Difficulty] = {
    **{d.value.lower(): d for d in Difficulty},
    **{label.lower(): Difficulty(code) for code, label in DIFFICULTY_LABELS.items()},
    "recall": Difficulty.RECALL,
    "comprehension": Difficulty.COMPREHENSION,
    "application": Difficulty.APPLICATION,
    "high_application": Difficulty.HIGH_APPLICATION,
}

_TYPE_ALIASES: dict[str, QuestionType] = {
    **{t.value.lower(): t for t in QuestionType},
    "multiple_choice": QuestionType.MULTIPLE_CHOICE,
    "essay": QuestionType.ESSAY,
    "true_false": QuestionType.TRUE_FALSE,
    "short_answer": QuestionType.SHORT_ANSWER,
}


class PoolParseError(Exception):
    """Pool document or one of its questions has an unrecognized shape."""

    def __init__(self, message: str, index: int | None = None):
        self.index = index
        prefix = f"Question #{index}: " if index is not None else ""
        super().__init__(f"{prefix}{message}")


# =============================================================================
# FIELD RESOLUTION
# =============================================================================


def _resolve_difficulty(raw: Any, index: int) -> Difficulty:
    if raw is None or raw == "":
        return Difficulty.RECALL
    if isinstance(raw, str):
        difficulty = _DIFFICULTY_ALIASES.get(raw.strip().lower())
        if difficulty is not None:
            return difficulty
    raise PoolParseError(f"unknown difficulty {raw!r}", index)


def _resolve_type(raw: Any, index: int) -> QuestionType:
    if raw is None or raw == "":
        return QuestionType.MULTIPLE_CHOICE
    if isinstance(raw, str):
        question_type = _TYPE_ALIASES.get(raw.strip().lower())
        if question_type is not None:
            return question_type
    raise PoolParseError(f"unknown question type {raw!r}", index)


def _resolve_options(raw: Any, index: int) -> tuple[str, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise PoolParseError("options must be a list", index)
    if len(raw) > MAX_OPTIONS:
        raise PoolParseError(f"too many options ({len(raw)} > {MAX_OPTIONS})", index)

    options: list[str] = []
    for opt_idx, opt in enumerate(raw):
        if isinstance(opt, str):
            options.append(opt)
        elif isinstance(opt, dict) and "content" in opt:
            label = opt.get("id") or chr(ord("A") + opt_idx)
            options.append(f"{label}. {opt['content']}")
        else:
            raise PoolParseError(f"option {opt_idx} has an unrecognized shape", index)
    return tuple(options)


def _resolve_correct_answer(item: dict[str, Any], index: int) -> str | None:
    option_id = item.get("correctOptionId")
    # bool is an int subclass but never a valid option index
    if isinstance(option_id, int) and not isinstance(option_id, bool):
        if not 0 <= option_id < MAX_OPTIONS:
            raise PoolParseError(f"correctOptionId out of range: {option_id}", index)
        return chr(ord("A") + option_id)
    if option_id is not None:
        return str(option_id)

    answer = item.get("correctAnswer")
    if answer is not None:
        return str(answer)
    return None


def _resolve_explanation(item: dict[str, Any]) -> str | None:
    for name in EXPLANATION_FIELDS:
        value = item.get(name)
        if value:
            return str(value)
    return None


def parse_question(item: Any, index: int) -> QuestionRecord:
    """Parse a single question object.

    Raises:
        PoolParseError: If the object has an unrecognized shape
    """
    if not isinstance(item, dict):
        raise PoolParseError("question must be an object", index)

    content = item.get("content") or item.get("text")
    if not isinstance(content, str) or not content.strip():
        raise PoolParseError("missing content/text", index)

    raw_id = item.get("id")
    question_id = str(raw_id) if raw_id not in (None, "") else f"q-{index}"

    return QuestionRecord(
        id=question_id,
        content=content,
        type=_resolve_type(item.get("type"), index),
        difficulty=_resolve_difficulty(item.get("difficulty"), index),
        options=_resolve_options(item.get("options"), index),
        correct_answer=_resolve_correct_answer(item, index),
        explanation=_resolve_explanation(item),
    )


# =============================================================================
# MAIN FUNCTIONS
# =============================================================================


def parse_question_pool(document: Any) -> list[QuestionRecord]:
    """Parse a pool document into QuestionRecords.

    Args:
        document: Decoded JSON (list, or dict with "questions")

    Returns:
        List of QuestionRecord in document order

    Raises:
        PoolParseError: If the document or any question is malformed,
            ids repeat, or the pool is empty
    """
    if isinstance(document, list):
        items = document
    elif isinstance(document, dict) and isinstance(document.get("questions"), list):
        items = document["questions"]
    else:
        raise PoolParseError("expected a list of questions or an object with a 'questions' list")

    questions = [parse_question(item, idx) for idx, item in enumerate(items)]
    if not questions:
        raise PoolParseError("pool contains no questions")

    seen: set[str] = set()
    for idx, question in enumerate(questions):
        if question.id in seen:
            raise PoolParseError(f"duplicate id {question.id!r}", idx)
        seen.add(question.id)

    logger.debug("question_pool_parsed", count=len(questions))
    return questions


def load_question_pool(path: Path) -> list[QuestionRecord]:
    """Load and parse a pool document from a JSON file.

    Raises:
        PoolParseError: If the file cannot be read or parsed
    """
    try:
        with open(path, encoding="utf-8") as f:
            document = json.load(f)
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
        raise PoolParseError(f"Cannot read pool file {path}: {e}") from e

    questions = parse_question_pool(document)
    logger.info("question_pool_loaded", path=str(path), count=len(questions))
    return questions
