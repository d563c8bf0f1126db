"""Tests for the progress summary."""

import pytest

from models import ReadingDetails, SpeakingDetails, TestModule, TestResult, WritingDetails
from progress import ProgressTracker, round_to_half_band

from conftest import make_feedback


def result(result_id, module, score, day):
    details = {
        TestModule.READING: ReadingDetails(raw_score=30, total_questions=40),
        TestModule.WRITING: WritingDetails(feedback=make_feedback(score)),
        TestModule.SPEAKING: SpeakingDetails(length=11),
    }[module]
    return TestResult(
        id=result_id,
        user_id="student_arin",
        date=f"2024-06-{day:02d}T09:00:00+00:00",
        module=module,
        score=score,
        details=details,
    )


@pytest.fixture
def tracker(results, session):
    return ProgressTracker(results, session)


def test_round_to_half_band():
    assert round_to_half_band(6.2) == 6.0
    assert round_to_half_band(6.3) == 6.5
    assert round_to_half_band(6.8) == 7.0


class TestSummary:
    def test_empty_history(self, tracker):
        summary = tracker.summary()
        assert summary["overall_band"] is None
        assert summary["trend"] == []
        assert summary["latest"] == {"Reading": None, "Writing": None, "Speaking": None}
        assert tracker.get_recommendations(summary) == ["Take your first practice test to see where you stand!"]

    def test_provisional_speaking_excluded_from_average(self, tracker, results):
        results.save_result(result("a", TestModule.READING, 7.0, 1))
        results.save_result(result("b", TestModule.WRITING, 6.0, 2))
        results.save_result(result("c", TestModule.SPEAKING, 0, 3))

        summary = tracker.summary()

        assert summary["overall_band"] == 6.5
        assert summary["estimated_band"] == 6.5
        assert summary["attempts"] == {"Reading": 1, "Writing": 1, "Speaking": 1}
        assert summary["latest"]["Speaking"] is None
        assert summary["ungraded"] == 1

    def test_latest_is_most_recent(self, tracker, results):
        results.save_result(result("a", TestModule.READING, 5.0, 1))
        results.save_result(result("b", TestModule.READING, 7.5, 4))
        assert tracker.summary()["latest"]["Reading"] == 7.5

    def test_trend_is_last_ten_oldest_first(self, tracker, results):
        for day in range(1, 13):
            results.save_result(result(f"r{day}", TestModule.READING, 4.0 + day * 0.25, day))
        trend = tracker.summary()["trend"]
        assert len(trend) == 10
        assert trend[0]["date"] == "2024-06-03"
        assert trend[-1]["date"] == "2024-06-12"

    def test_recommends_weakest_module(self, tracker, results):
        results.save_result(result("a", TestModule.READING, 7.0, 1))
        results.save_result(result("b", TestModule.WRITING, 5.5, 2))
        recs = tracker.get_recommendations(tracker.summary())
        assert any("Focus on Writing" in r for r in recs)
        assert any("Speaking" in r for r in recs)
