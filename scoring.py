"""Scoring engine: raw Reading scores and band conversion."""

from typing import Dict, Optional

from config import READING_BAND_TABLE, READING_FLOOR_BAND
from errors import ValidationError
from models import ReadingModule


def normalize_answer(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def is_correct(given: Optional[str], correct: Optional[str]) -> bool:
    """Trimmed, case-insensitive comparison. A question without a key never matches."""
    given_norm = normalize_answer(given)
    correct_norm = normalize_answer(correct)
    return bool(given_norm) and bool(correct_norm) and given_norm == correct_norm


def count_correct_answers(module: ReadingModule, answers: Dict[int, str]) -> int:
    """Count questions whose stored answer matches the answer key."""
    return sum(1 for q in module.questions if is_correct(answers.get(q.id), q.correct_answer))


def reading_band_score(raw_correct: int) -> float:
    """Map a raw Reading score (out of 40) to an IELTS band.

    Step function over fixed thresholds; anything below 10 collapses to the
    3.5 floor. This is coarser than the official conversion table at the low
    end and no extra thresholds are extrapolated.
    """
    if isinstance(raw_correct, bool) or not isinstance(raw_correct, int):
        raise ValidationError(f"Raw score must be an integer, got {raw_correct!r}")
    if raw_correct < 0:
        raise ValidationError(f"Raw score cannot be negative: {raw_correct}")

    for minimum, band in READING_BAND_TABLE:
        if raw_correct >= minimum:
            return band
    return READING_FLOOR_BAND
