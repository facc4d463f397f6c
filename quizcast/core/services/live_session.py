"""Service owning the single shared live quiz session.

All mutation goes through :class:`LiveSession` methods under one lock. The
answer path takes the lock twice: once to check that a window is open, and
once (after resolving the user against the store) to claim the user's slot,
settle the first-correct bonus and persist the score. Advancing needs the same
lock, so it waits for an in-flight scoring step and clears the per-question
state before the next window opens.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
import logging
from threading import Lock

from quizcast.constants.quiz_constants import ANSWER_CHANNEL_LIVE
from quizcast.core.errors import StoreError
from quizcast.core.events import EventSink, GameOverEvent, NewQuestionEvent
from quizcast.core.models import QuizQuestion
from quizcast.core.services.scoring import award_points
from quizcast.storage.store import QuizStore

logger = logging.getLogger(__name__)


class SessionPhase(str, Enum):
    IDLE = "idle"
    QUESTION_LIVE = "question_live"
    WINDOW_CLOSED = "window_closed"
    GAME_OVER = "game_over"


class AnswerStatus(str, Enum):
    FIRST_CORRECT = "first-correct"
    CORRECT = "correct"
    WRONG = "wrong"
    NO_ACTIVE_QUESTION = "no-active-question"
    MISSING_IDENTITY = "missing-identity"
    UNKNOWN_USER = "unknown-user"
    ALREADY_ANSWERED = "already-answered"
    SERVER_ERROR = "server-error"

    @property
    def accepted(self) -> bool:
        return self in (AnswerStatus.FIRST_CORRECT, AnswerStatus.CORRECT, AnswerStatus.WRONG)

    @property
    def is_conflict(self) -> bool:
        return self is AnswerStatus.ALREADY_ANSWERED


_REJECTION_MESSAGES = {
    AnswerStatus.NO_ACTIVE_QUESTION: "No active question.",
    AnswerStatus.MISSING_IDENTITY: "Missing identity.",
    AnswerStatus.UNKNOWN_USER: "Unknown user.",
    AnswerStatus.ALREADY_ANSWERED: "You already answered this question!",
    AnswerStatus.SERVER_ERROR: "Server error processing answer.",
}


@dataclass(frozen=True, slots=True)
class AnswerOutcome:
    """Result of one live submission, sent back to the submitter only."""

    status: AnswerStatus
    message: str
    points: int = 0
    question_id: int | None = None
    user_id: int | None = None

    @property
    def accepted(self) -> bool:
        return self.status.accepted

    @classmethod
    def rejected(cls, status: AnswerStatus, question_id: int | None = None) -> "AnswerOutcome":
        return cls(status=status, message=_REJECTION_MESSAGES[status], question_id=question_id)


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    phase: SessionPhase
    current_index: int
    total_questions: int
    accepting_answers: bool
    question: QuizQuestion | None


class LiveSession:
    """Question cursor, answer window and per-question answer bookkeeping."""

    def __init__(
        self,
        store: QuizStore,
        catalog_source: Callable[[], Sequence[QuizQuestion]],
        sink: EventSink,
        *,
        game_name: str | None = None,
        on_correct_answer: Callable[[AnswerOutcome], None] | None = None,
    ) -> None:
        self._store = store
        self._catalog_source = catalog_source
        self._sink = sink
        self._game_name = game_name
        self._on_correct_answer = on_correct_answer
        self._lock = Lock()

        self._catalog: tuple[QuizQuestion, ...] = ()
        self._current_index: int = -1
        self._accepting_answers: bool = False
        self._first_answered: bool = False
        self._answered_users: set[int] = set()
        self._phase: SessionPhase = SessionPhase.IDLE

    @property
    def game_name(self) -> str | None:
        return self._game_name

    # --- Sequencing ---

    def advance(self) -> QuizQuestion | None:
        """Move to the next question, or to game over once the catalog is exhausted.

        Returns the question now live, or ``None`` when the game is over.
        """
        with self._lock:
            if self._phase is SessionPhase.GAME_OVER:
                return None
            if self._phase is SessionPhase.IDLE:
                self._catalog = tuple(self._catalog_source())
            self._accepting_answers = False
            self._current_index += 1
            self._answered_users.clear()
            self._first_answered = False
            total = len(self._catalog)
            if self._current_index >= total:
                self._phase = SessionPhase.GAME_OVER
                question = None
            else:
                question = self._catalog[self._current_index]
                self._phase = SessionPhase.QUESTION_LIVE
                self._accepting_answers = True
            position = self._current_index + 1

        if question is None:
            logger.info("Game over - no more questions.")
            self._sink.publish(GameOverEvent())
            return None

        logger.info("Sent question %d/%d (id=%s)", position, total, question.id)
        self._sink.publish(NewQuestionEvent.from_question(question, position, total))
        return question

    def close_window(self) -> None:
        with self._lock:
            self._accepting_answers = False
            if self._phase is SessionPhase.QUESTION_LIVE:
                self._phase = SessionPhase.WINDOW_CLOSED

    def is_over(self) -> bool:
        with self._lock:
            return self._phase is SessionPhase.GAME_OVER

    def is_accepting_answers(self) -> bool:
        with self._lock:
            return self._accepting_answers

    def has_answered(self, user_id: int) -> bool:
        with self._lock:
            return user_id in self._answered_users

    def first_answered(self) -> bool:
        with self._lock:
            return self._first_answered

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            question = None
            if 0 <= self._current_index < len(self._catalog):
                question = self._catalog[self._current_index]
            return SessionSnapshot(
                phase=self._phase,
                current_index=self._current_index,
                total_questions=len(self._catalog),
                accepting_answers=self._accepting_answers,
                question=question,
            )

    # --- Answer intake ---

    def submit_answer(self, identity: int | str | None, answer: str | None) -> AnswerOutcome:
        with self._lock:
            if not self._accepting_answers:
                return AnswerOutcome.rejected(AnswerStatus.NO_ACTIVE_QUESTION)
            question_index = self._current_index
            question_id = self._catalog[question_index].id

        if identity is None or isinstance(identity, bool) or not str(identity).strip():
            return AnswerOutcome.rejected(AnswerStatus.MISSING_IDENTITY, question_id)
        try:
            user_id = self._store.resolve_user(identity)
        except StoreError:
            return AnswerOutcome.rejected(AnswerStatus.SERVER_ERROR, question_id)
        if user_id is None:
            return AnswerOutcome.rejected(AnswerStatus.UNKNOWN_USER, question_id)

        with self._lock:
            if not self._accepting_answers or self._current_index != question_index:
                return AnswerOutcome.rejected(AnswerStatus.NO_ACTIVE_QUESTION)
            if user_id in self._answered_users:
                return AnswerOutcome.rejected(AnswerStatus.ALREADY_ANSWERED, question_id)

            question = self._catalog[question_index]
            is_correct = question.is_correct(answer)
            claims_bonus = is_correct and not self._first_answered
            award = award_points(is_correct, claims_bonus)
            self._answered_users.add(user_id)
            if claims_bonus:
                self._first_answered = True
            try:
                self._store.record_answer(
                    user_id=user_id,
                    question_id=question.id,
                    selected=answer,
                    correct_answer=question.correct,
                    is_correct=is_correct,
                    points=award.points,
                    game_name=self._game_name,
                    channel=ANSWER_CHANNEL_LIVE,
                )
            except StoreError:
                self._answered_users.discard(user_id)
                if claims_bonus:
                    self._first_answered = False
                logger.exception("submitAnswer error for user %s", user_id)
                return AnswerOutcome.rejected(AnswerStatus.SERVER_ERROR, question_id)

        if award.first_correct:
            outcome = AnswerOutcome(
                status=AnswerStatus.FIRST_CORRECT,
                message=f"First Correct! +{award.points} points",
                points=award.points,
                question_id=question.id,
                user_id=user_id,
            )
        elif award.is_correct:
            outcome = AnswerOutcome(
                status=AnswerStatus.CORRECT,
                message=f"Correct! +{award.points} points",
                points=award.points,
                question_id=question.id,
                user_id=user_id,
            )
        else:
            outcome = AnswerOutcome(
                status=AnswerStatus.WRONG,
                message="Wrong!",
                question_id=question.id,
                user_id=user_id,
            )

        if award.is_correct and self._on_correct_answer is not None:
            try:
                self._on_correct_answer(outcome)
            except Exception:
                logger.exception("Leaderboard refresh could not be scheduled")
        return outcome
