"""Band-score history: latest scores, overall band, and trend."""

from typing import Dict, List, Optional

from identity import Session
from models import TestModule, TestResult
from result_repository import ResultRepository

TREND_LENGTH = 10


def round_to_half_band(value: float) -> float:
    return round(value * 2) / 2


class ProgressTracker:
    def __init__(self, results: ResultRepository, session: Session):
        self.results = results
        self.session = session

    def history(self) -> List[TestResult]:
        return self.results.list_results_for_user(self.session.user_id)

    def summary(self, results: Optional[List[TestResult]] = None) -> Dict:
        """Dashboard numbers for the session's user.

        Provisional speaking results (score 0, ungraded) are counted as attempts
        but never enter scores or averages.
        """
        if results is None:
            results = self.history()
        graded = [r for r in results if r.is_graded]

        latest = {}
        attempts = {}
        for module in TestModule:
            module_results = [r for r in results if r.module == module]
            attempts[module.value] = len(module_results)
            module_graded = [r for r in module_results if r.is_graded]
            latest[module.value] = module_graded[0].score if module_graded else None

        overall = None
        if graded:
            overall = round(sum(r.score for r in graded) / len(graded), 1)

        # Oldest first so the trend reads left to right
        trend = [
            {"date": r.date[:10], "module": r.module.value, "score": r.score}
            for r in reversed(graded[:TREND_LENGTH])
        ]

        return {
            "latest": latest,
            "attempts": attempts,
            "overall_band": overall,
            "estimated_band": round_to_half_band(overall) if overall is not None else None,
            "trend": trend,
            "ungraded": len(results) - len(graded),
        }

    def get_recommendations(self, summary: Dict) -> List[str]:
        """Rule-based study suggestions from a summary."""
        recs = []
        if not any(summary["attempts"].values()):
            recs.append("Take your first practice test to see where you stand!")
            return recs

        for module, count in summary["attempts"].items():
            if count == 0:
                recs.append(f"Try a {module} test to get a complete band profile.")

        scored = {m: s for m, s in summary["latest"].items() if s is not None}
        if len(scored) >= 2:
            weakest = min(scored, key=scored.get)
            recs.append(f"Focus on {weakest} - your latest band there is {scored[weakest]}.")

        trend = summary["trend"]
        if len(trend) >= 2:
            if trend[-1]["score"] > trend[-2]["score"]:
                recs.append("Your scores are trending up!")
            elif trend[-1]["score"] < trend[-2]["score"]:
                recs.append("Scores dipped slightly. Review your feedback and try again.")

        if summary["ungraded"]:
            recs.append("Speaking sessions are recorded but not graded yet.")

        return recs
