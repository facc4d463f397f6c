"""Request payload schemas validated at the API boundary."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from quizcast.constants.quiz_constants import MAX_ROW_ID


class UserPayload(BaseModel):
    """Payload schema for the identity-provider user upsert."""

    uid: str = Field(min_length=1)
    email: str | None = None
    display_name: str | None = None


class QuestionPayload(BaseModel):
    text: str | None = None
    option_a: str | None = None
    option_b: str | None = None
    option_c: str | None = None
    option_d: str | None = None
    correct: str | None = None
    difficulty: str | None = None

    def options(self) -> list[str | None]:
        return [self.option_a, self.option_b, self.option_c, self.option_d]


class BulkImportPayload(BaseModel):
    """Rows already parsed from a spreadsheet, one mapping per question."""

    rows: list[dict[str, Any]]


class SubmitAnswerPayload(BaseModel):
    user_id: int | str | None = None
    question_id: int | None = Field(default=None, ge=1, le=MAX_ROW_ID)
    selected: str | None = None
    game_name: str | None = None


class JoinGamePayload(BaseModel):
    user_id: int | str
    game_id: int = Field(ge=1, le=MAX_ROW_ID)


class NewGamePayload(BaseModel):
    game_name: str = Field(min_length=1)
    teacher_id: int | None = Field(default=None, ge=1, le=MAX_ROW_ID)
    uid: str | None = None

    @model_validator(mode="after")
    def _require_teacher(self) -> "NewGamePayload":
        if self.teacher_id is None and not self.uid:
            raise ValueError("teacher_id or uid required")
        return self


class LiveAnswerMessage(BaseModel):
    """Message a client sends over the WebSocket to answer the live question."""

    type: Literal["submit-answer"]
    user_id: int | str | None = None
    answer: str | None = None
