"""Exam composition and scoring engine.

Modules:
- models: QuestionRecord, ExamConfig, ComposedExam, SessionResult
- question_loader: Pool document parsing
- distribution: Standard-ratio bottleneck and quotas
- exam_composer: Custom, standard and matrix composition
- grader: Answer normalization and scoring
- history_repository: Session history persistence
- exam_session: Session state machine
"""

from exambank.core.distribution import compute_distribution
from exambank.core.exam_composer import compose_exam
from exambank.core.grader import grade_session, normalize_answer
from exambank.core.history_repository import append_history

__all__ = [
    "append_history",
    "compose_exam",
    "compute_distribution",
    "grade_session",
    "normalize_answer",
]
