"""Tests for pool document loading (F1)."""

import json

import pytest

from exambank.core.models import Difficulty, QuestionType
from exambank.core.question_loader import (
    PoolParseError,
    load_question_pool,
    parse_question,
    parse_question_pool,
)


class TestParseQuestion:
    """Tests for single-question parsing."""

    def test_minimal_question_defaults(self):
        question = parse_question({"content": "What is 2 + 2?"}, 0)

        assert question.id == "q-0"
        assert question.type is QuestionType.MULTIPLE_CHOICE
        assert question.difficulty is Difficulty.RECALL
        assert question.options == ()
        assert question.correct_answer is None

    def test_text_field_fallback(self):
        question = parse_question({"id": "x", "text": "Question text"}, 3)
        assert question.content == "Question text"
        assert question.id == "x"

    def test_numeric_id_becomes_string(self):
        assert parse_question({"id": 17, "content": "c"}, 0).id == "17"

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("NB", Difficulty.RECALL),
            ("th", Difficulty.COMPREHENSION),
            ("Vận dụng", Difficulty.APPLICATION),
            ("Vận dụng cao", Difficulty.HIGH_APPLICATION),
            ("high_application", Difficulty.HIGH_APPLICATION),
        ],
    )
    def test_difficulty_aliases(self, raw, expected):
        assert parse_question({"content": "c", "difficulty": raw}, 0).difficulty is expected

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("MCQ", QuestionType.MULTIPLE_CHOICE),
            ("essay", QuestionType.ESSAY),
            ("TF", QuestionType.TRUE_FALSE),
            ("short_answer", QuestionType.SHORT_ANSWER),
        ],
    )
    def test_type_aliases(self, raw, expected):
        assert parse_question({"content": "c", "type": raw}, 0).type is expected

    def test_option_objects_are_flattened(self):
        question = parse_question(
            {
                "content": "c",
                "options": [{"id": "A", "content": "first"}, {"content": "second"}],
            },
            0,
        )
        assert question.options == ("A. first", "B. second")
        assert question.option_labels == ["A", "B"]

    def test_string_options_kept(self):
        question = parse_question({"content": "c", "options": ["A. yes", "no"]}, 0)
        assert question.options == ("A. yes", "no")
        assert question.option_labels == ["A", "B"]

    def test_correct_option_id_int(self):
        question = parse_question({"content": "c", "correctOptionId": 2}, 0)
        assert question.correct_answer == "C"

    def test_correct_option_id_string(self):
        question = parse_question({"content": "c", "correctOptionId": "B"}, 0)
        assert question.correct_answer == "B"

    def test_correct_answer_fallback(self):
        question = parse_question({"content": "c", "correctAnswer": "D"}, 0)
        assert question.correct_answer == "D"

    def test_correct_option_id_out_of_range(self):
        with pytest.raises(PoolParseError):
            parse_question({"content": "c", "correctOptionId": 26}, 0)

    @pytest.mark.parametrize("field", ["explanation", "solution", "loigiai", "huongdan"])
    def test_explanation_fields(self, field):
        question = parse_question({"content": "c", field: "Because."}, 0)
        assert question.explanation == "Because."


class TestParseErrors:
    """Unrecognized shapes are rejected."""

    def test_non_object_question(self):
        with pytest.raises(PoolParseError):
            parse_question("just a string", 0)

    def test_missing_content(self):
        with pytest.raises(PoolParseError) as exc_info:
            parse_question({"id": "x"}, 4)
        assert "Question #4" in str(exc_info.value)
        assert exc_info.value.index == 4

    def test_unknown_difficulty(self):
        with pytest.raises(PoolParseError):
            parse_question({"content": "c", "difficulty": "impossible"}, 0)

    def test_unknown_type(self):
        with pytest.raises(PoolParseError):
            parse_question({"content": "c", "type": "Matching"}, 0)

    def test_options_not_a_list(self):
        with pytest.raises(PoolParseError):
            parse_question({"content": "c", "options": "A, B"}, 0)

    def test_too_many_options(self):
        with pytest.raises(PoolParseError):
            parse_question({"content": "c", "options": [str(i) for i in range(27)]}, 0)

    def test_bad_option_shape(self):
        with pytest.raises(PoolParseError):
            parse_question({"content": "c", "options": [{"id": "A"}]}, 0)


class TestParseQuestionPool:
    """Tests for parse_question_pool."""

    def test_bare_list(self):
        pool = parse_question_pool([{"content": "a"}, {"content": "b"}])
        assert [q.id for q in pool] == ["q-0", "q-1"]

    def test_wrapped_document(self, sample_pool_document):
        pool = parse_question_pool(sample_pool_document)
        assert len(pool) == 20

    def test_round_trip_of_records(self, sample_pool, sample_pool_document):
        assert parse_question_pool(sample_pool_document) == sample_pool

    def test_empty_pool(self):
        with pytest.raises(PoolParseError):
            parse_question_pool([])

    def test_duplicate_ids(self):
        with pytest.raises(PoolParseError) as exc_info:
            parse_question_pool([{"id": "a", "content": "x"}, {"id": "a", "content": "y"}])
        assert "duplicate" in str(exc_info.value)

    def test_wrong_document_shape(self):
        with pytest.raises(PoolParseError):
            parse_question_pool({"items": []})


class TestLoadQuestionPool:
    """Tests for load_question_pool."""

    def test_load_file(self, pool_file):
        assert len(load_question_pool(pool_file)) == 20

    def test_missing_file(self, tmp_path):
        with pytest.raises(PoolParseError):
            load_question_pool(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(PoolParseError):
            load_question_pool(path)

    def test_unicode_content(self, tmp_path):
        path = tmp_path / "vi.json"
        path.write_text(
            json.dumps([{"content": "Thủ đô của Việt Nam?", "difficulty": "Nhận biết"}], ensure_ascii=False),
            encoding="utf-8",
        )
        pool = load_question_pool(path)
        assert pool[0].content == "Thủ đô của Việt Nam?"
