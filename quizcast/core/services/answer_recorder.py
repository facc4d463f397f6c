"""Service for the request/response answer path used outside the live loop.

Each call scores one answer to a stored question, optionally inside a named
game, and returns the updated totals. Points follow the same policy as the
live session: the first correct answer recorded for a question within the
same game scope earns the bonus. A user answers a question once per scope;
repeats are rejected so aggregate totals never change on resubmission. Answers
given in the live session count toward the same totals but never block or
consume anything here.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging
from threading import Lock

from quizcast.constants.quiz_constants import ANSWER_CHANNEL_API
from quizcast.core.errors import AlreadyAnsweredError, InvalidInputError, NotFoundError
from quizcast.core.models import GameScoreRecord, PerformanceRecord
from quizcast.core.services.scoring import award_points
from quizcast.storage.store import QuizStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RecordedAnswer:
    user_id: int
    question_id: int
    is_correct: bool
    first_correct: bool
    points_awarded: int
    performance: PerformanceRecord
    game_score: GameScoreRecord | None = None


class AnswerRecorder:
    def __init__(
        self,
        store: QuizStore,
        on_recorded: Callable[[RecordedAnswer, str | None], None] | None = None,
    ) -> None:
        self._store = store
        self._on_recorded = on_recorded
        self._lock = Lock()

    def submit(
        self,
        identity: int | str | None,
        question_id: int | None,
        selected: str | None,
        game_name: str | None = None,
    ) -> RecordedAnswer:
        if identity is None or not str(identity).strip() or question_id is None or selected is None:
            raise InvalidInputError("user_id, question_id, selected required")
        scope = game_name.strip() if game_name and game_name.strip() else None

        user_id = self._store.resolve_user(identity)
        if user_id is None:
            raise NotFoundError("user not found")
        question = self._store.get_question(question_id)
        if question is None:
            raise NotFoundError("Question not found")

        with self._lock:
            if self._store.answer_exists(user_id, question.id, scope, ANSWER_CHANNEL_API):
                raise AlreadyAnsweredError("You already answered this question!")
            is_correct = question.is_correct(selected)
            claims_bonus = is_correct and not self._store.correct_answer_exists(
                question.id, scope, ANSWER_CHANNEL_API
            )
            award = award_points(is_correct, claims_bonus)
            totals = self._store.record_answer(
                user_id=user_id,
                question_id=question.id,
                selected=selected,
                correct_answer=question.correct,
                is_correct=is_correct,
                points=award.points,
                game_name=scope,
                channel=ANSWER_CHANNEL_API,
            )

        recorded = RecordedAnswer(
            user_id=user_id,
            question_id=question.id,
            is_correct=award.is_correct,
            first_correct=award.first_correct,
            points_awarded=award.points,
            performance=totals.performance,
            game_score=totals.game_score,
        )
        if self._on_recorded is not None:
            try:
                self._on_recorded(recorded, scope)
            except Exception:
                logger.exception("Leaderboard refresh could not be scheduled")
        return recorded
