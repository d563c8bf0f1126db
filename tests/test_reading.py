"""Tests for the Reading test session."""

import json

import pytest

from errors import InvalidStateError, ValidationError
from models import TestModule
from reading import ReadingSession, ReadingState

from conftest import correct_answer_for, make_bank, make_reading_test, sequential_clock, sequential_ids


@pytest.fixture
def reading(content, results, session):
    content.save_bank(make_bank(tests=[make_reading_test("r1")]))
    return ReadingSession(content, results, session, id_factory=sequential_ids("res"), clock=sequential_clock())


class TestSelect:
    def test_select_starts_attempt(self, reading):
        assert reading.select_test("r1") == ReadingState.IN_PROGRESS
        assert reading.current_passage.title == "Passage 1"

    def test_unknown_test(self, reading):
        with pytest.raises(ValidationError):
            reading.select_test("missing")
        assert reading.state == ReadingState.UNSELECTED

    def test_incomplete_stored_content(self, reading, local_store):
        # Written straight to the store, bypassing repository validation
        bank = make_bank("raw", tests=[make_reading_test("short", counts=(20, 20))])
        local_store.save_bank(bank)
        assert reading.select_test("short") == ReadingState.CONTENT_INCOMPLETE
        with pytest.raises(InvalidStateError):
            reading.submit()

    def test_reselect_clears_answers(self, reading):
        reading.select_test("r1")
        reading.answer(1, "x")
        reading.select_test("r1")
        assert reading.answers == {}


class TestAnswering:
    def test_last_write_wins(self, reading):
        reading.select_test("r1")
        reading.answer(5, "first")
        reading.answer(5, correct_answer_for(5))
        assert reading.answers[5] == correct_answer_for(5)

    def test_passage_navigation_keeps_answers(self, reading):
        reading.select_test("r1")
        reading.answer(1, "a")
        reading.go_to_passage(2)
        reading.go_to_passage(0)
        assert reading.answers == {1: "a"}

    def test_navigation_out_of_range(self, reading):
        reading.select_test("r1")
        with pytest.raises(ValidationError):
            reading.go_to_passage(3)

    def test_answers_ignored_before_selection(self, reading):
        assert not reading.answer(1, "a")


class TestSubmit:
    def test_37_correct_is_band_8_5(self, reading, results, session):
        reading.select_test("r1")
        for qid in range(1, 38):
            reading.answer(qid, correct_answer_for(qid).upper())
        reading.answer(38, "wrong")

        result = reading.submit()

        assert reading.state == ReadingState.SUBMITTED
        assert result.module == TestModule.READING
        assert result.score == 8.5
        assert result.details.raw_score == 37
        assert result.details.total_questions == 40
        assert [r.id for r in results.list_results_for_user(session.user_id)] == [result.id]

    def test_blank_submission_scores_floor(self, reading):
        reading.select_test("r1")
        assert reading.submit().score == 3.5

    def test_no_answers_after_submit(self, reading):
        reading.select_test("r1")
        reading.submit()
        assert not reading.answer(1, "late")
        assert 1 not in reading.answers

    def test_submit_twice_rejected(self, reading, results):
        reading.select_test("r1")
        reading.submit()
        with pytest.raises(InvalidStateError):
            reading.submit()
        assert len(results.list_all_results()) == 1

    def test_marks_after_submit(self, reading):
        reading.select_test("r1")
        reading.answer(1, correct_answer_for(1))
        assert reading.is_question_correct(1) is None
        reading.submit()
        assert reading.is_question_correct(1) is True
        assert reading.is_question_correct(2) is False

    def test_stored_answers_are_serializable(self, reading, local_store):
        reading.select_test("r1")
        reading.answer(3, "c")
        reading.submit()
        raw = json.loads((local_store.data_dir / "ielts_results_v2.json").read_text())
        assert raw[0]["details"]["answers"] == {"3": "c"}

    def test_default_result_ids_are_unique(self, reading, content, results, session):
        # The fixture has stored test r1; this session uses the default id factory
        fresh = ReadingSession(content, results, session)
        fresh.select_test("r1")
        first = fresh.submit()
        fresh.select_test("r1")
        second = fresh.submit()
        assert first.id != second.id
        assert len(results.list_all_results()) == 2
