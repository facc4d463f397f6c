"""Event payloads pushed to connected clients, plus the sink protocol."""

from __future__ import annotations

from typing import Literal, Protocol

from pydantic import BaseModel, Field

from quizcast.constants.about import GAME_OVER_MESSAGE
from quizcast.core.markdown_math_renderer import renderer
from quizcast.core.models import LeaderboardRow, QuizQuestion


class LeaderboardEntry(BaseModel):
    user_id: int
    display_name: str | None = None
    score: int
    attempts: int = 0
    correct: int = 0
    accuracy: float = 0.0

    @classmethod
    def from_row(cls, row: LeaderboardRow) -> "LeaderboardEntry":
        return cls(
            user_id=row.user_id,
            display_name=row.display_name,
            score=row.score,
            attempts=row.attempts,
            correct=row.correct,
            accuracy=row.accuracy,
        )


class NewQuestionEvent(BaseModel):
    """Announces the live question. Never carries the answer key."""

    type: Literal["new-question"] = "new-question"
    id: int
    text: str
    prompt_html: str
    options: dict[str, str]
    difficulty: str
    position: int
    total: int

    @classmethod
    def from_question(cls, question: QuizQuestion, position: int, total: int) -> "NewQuestionEvent":
        return cls(
            id=question.id,
            text=question.text,
            prompt_html=renderer.render_fragment(question.text),
            options=dict(question.options),
            difficulty=question.difficulty,
            position=position,
            total=total,
        )


class GlobalLeaderboardEvent(BaseModel):
    type: Literal["leaderboard-global"] = "leaderboard-global"
    players: list[LeaderboardEntry] = Field(default_factory=list)


class GameLeaderboardEvent(BaseModel):
    type: Literal["leaderboard-game"] = "leaderboard-game"
    game_id: int | None = None
    game_name: str | None = None
    players: list[LeaderboardEntry] = Field(default_factory=list)


class GameOverEvent(BaseModel):
    type: Literal["game-over"] = "game-over"
    message: str = GAME_OVER_MESSAGE


class AnswerResultMessage(BaseModel):
    """Unicast reply to the connection that submitted an answer."""

    type: Literal["answer-result"] = "answer-result"
    status: str
    message: str
    points: int = 0
    question_id: int | None = None


class EventSink(Protocol):
    """Destination for broadcast events. ``publish`` must never block."""

    def publish(self, event: BaseModel) -> None: ...
