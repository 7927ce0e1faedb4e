"""Session history repository.

Responsibilities:
- Append one SessionResult per completed session
- Persist the full list to a JSON file, newest first
- Replace the file atomically so readers never see a partial write

Output structure (JSON):
- session_history_v1 schema with a sessions array
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

import structlog

from exambank.core.models import SessionResult

logger = structlog.get_logger(__name__)

SCHEMA = "session_history_v1"


class HistoryStoreError(Exception):
    """History file exists but cannot be read as a session list."""

    pass


class SessionHistoryStore:
    """Append-only, file-backed log of completed sessions.

    Single appender: one active session at a time, so no locking.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> list[SessionResult]:
        """Load all sessions, newest first.

        Returns:
            List of SessionResult ([] when the file does not exist yet)

        Raises:
            HistoryStoreError: If the file is not a valid history document
        """
        if not self.path.exists():
            return []

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise HistoryStoreError(f"Cannot read history file {self.path}: {e}") from e

        # Older files hold a bare list of records
        records = data.get("sessions") if isinstance(data, dict) else data
        if not isinstance(records, list):
            raise HistoryStoreError(f"History file {self.path} has no sessions list")

        try:
            return [SessionResult.from_dict(r) for r in records]
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            raise HistoryStoreError(f"Invalid session record in {self.path}: {e}") from e

    def append(self, result: SessionResult) -> list[SessionResult]:
        """Prepend a session and persist the full list.

        Returns:
            The updated list, newest first
        """
        sessions = [result, *self.load()]
        self._write(sessions)
        logger.info(
            "session_appended",
            session_id=result.id,
            score=result.score,
            total=result.total_questions,
            history_size=len(sessions),
        )
        return sessions

    def clear(self) -> None:
        """Replace the history with an empty list."""
        self._write([])
        logger.info("history_cleared", path=str(self.path))

    def _write(self, sessions: list[SessionResult]) -> None:
        document: dict[str, Any] = {
            "$schema": SCHEMA,
            "sessions": [s.to_dict() for s in sessions],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def append_history(store: SessionHistoryStore, result: SessionResult) -> list[SessionResult]:
    """Append a completed session to the store and return the updated list."""
    return store.append(result)
