"""Tests for the session history store (F2)."""

import json

import pytest

from exambank.core.history_repository import (
    SCHEMA,
    HistoryStoreError,
    SessionHistoryStore,
    append_history,
)
from exambank.core.models import ExamMode, SessionResult


def _result(score: int, session_id: str) -> SessionResult:
    return SessionResult(
        id=session_id,
        timestamp=1_700_000_000_000 + score,
        score=score,
        total_questions=10,
        time_spent=120,
        mode=ExamMode.STANDARD,
    )


@pytest.fixture
def store(tmp_path):
    return SessionHistoryStore(tmp_path / "history" / "sessions_v1.json")


class TestLoad:
    """Tests for SessionHistoryStore.load."""

    def test_missing_file_is_empty(self, store):
        assert store.load() == []

    def test_bare_list_layout(self, tmp_path):
        path = tmp_path / "legacy.json"
        path.write_text(
            json.dumps(
                [
                    {
                        "id": "abc",
                        "timestamp": 1,
                        "score": 5,
                        "totalQuestions": 10,
                        "timeSpent": 60,
                        "mode": "Custom",
                    }
                ]
            ),
            encoding="utf-8",
        )
        sessions = SessionHistoryStore(path).load()

        assert len(sessions) == 1
        assert sessions[0].mode is ExamMode.CUSTOM
        assert sessions[0].total_questions == 10

    def test_corrupt_file_raises(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{oops", encoding="utf-8")
        with pytest.raises(HistoryStoreError):
            SessionHistoryStore(path).load()

    def test_invalid_record_raises(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"sessions": [{"id": "x"}]}), encoding="utf-8")
        with pytest.raises(HistoryStoreError):
            SessionHistoryStore(path).load()

    def test_missing_sessions_list_raises(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"sessions": "nope"}), encoding="utf-8")
        with pytest.raises(HistoryStoreError):
            SessionHistoryStore(path).load()


class TestAppend:
    """Tests for appending sessions."""

    def test_newest_first(self, store):
        append_history(store, _result(3, "first"))
        sessions = append_history(store, _result(7, "second"))

        assert [s.id for s in sessions] == ["second", "first"]
        assert [s.id for s in store.load()] == ["second", "first"]

    def test_file_layout(self, store):
        store.append(_result(4, "abc"))
        data = json.loads(store.path.read_text(encoding="utf-8"))

        assert data["$schema"] == SCHEMA
        assert data["sessions"] == [
            {
                "id": "abc",
                "timestamp": 1_700_000_000_004,
                "score": 4,
                "totalQuestions": 10,
                "timeSpent": 120,
                "mode": "Standard",
            }
        ]

    def test_no_temp_files_left(self, store):
        store.append(_result(1, "a"))
        store.append(_result(2, "b"))

        leftovers = [p.name for p in store.path.parent.iterdir() if p.name != store.path.name]
        assert leftovers == []

    def test_failed_write_keeps_previous_file(self, store, monkeypatch):
        store.append(_result(1, "kept"))

        def broken_dump(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr("exambank.core.history_repository.json.dump", broken_dump)
        with pytest.raises(RuntimeError):
            store.append(_result(2, "lost"))
        monkeypatch.undo()

        assert [s.id for s in store.load()] == ["kept"]
        assert [p.name for p in store.path.parent.iterdir()] == [store.path.name]

    def test_round_trip_keeps_fields(self, store):
        original = _result(9, "xyz")
        store.append(original)
        assert store.load() == [original]


class TestClear:
    """Tests for SessionHistoryStore.clear."""

    def test_clear(self, store):
        store.append(_result(1, "a"))
        store.clear()

        assert store.load() == []
        assert store.path.exists()
