"""Point policy shared by every answer submission path."""

from __future__ import annotations

from dataclasses import dataclass

from quizcast.constants.quiz_constants import BASE_POINTS, FIRST_CORRECT_BONUS


@dataclass(frozen=True, slots=True)
class ScoreAward:
    is_correct: bool
    first_correct: bool
    points: int


def award_points(is_correct: bool, claims_first_correct: bool) -> ScoreAward:
    """Base points for a correct answer, plus the bonus for the first one."""
    if not is_correct:
        return ScoreAward(is_correct=False, first_correct=False, points=0)
    if claims_first_correct:
        return ScoreAward(
            is_correct=True,
            first_correct=True,
            points=BASE_POINTS + FIRST_CORRECT_BONUS,
        )
    return ScoreAward(is_correct=True, first_correct=False, points=BASE_POINTS)
