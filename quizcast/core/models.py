"""Domain models for the live quiz platform."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from quizcast.constants.quiz_constants import DEFAULT_DIFFICULTY, OPTION_LETTERS


@dataclass(frozen=True, slots=True)
class QuizQuestion:
    """Multiple-choice question with exactly four lettered options."""

    id: int
    text: str
    options: dict[str, str]
    correct: str
    difficulty: str = DEFAULT_DIFFICULTY

    def option_texts(self) -> list[str]:
        return [self.options[letter] for letter in OPTION_LETTERS]

    def is_correct(self, selected: str | None) -> bool:
        return selected is not None and selected == self.correct


@dataclass(frozen=True, slots=True)
class QuestionDraft:
    """Validated question that has not been stored yet."""

    text: str
    options: tuple[str, str, str, str]
    correct: str
    difficulty: str = DEFAULT_DIFFICULTY


@dataclass(slots=True)
class UserRecord:
    user_id: int
    uid: str | None
    email: str | None = None
    display_name: str | None = None


@dataclass(slots=True)
class PerformanceRecord:
    """Running per-user totals across every game."""

    user_id: int
    score: int = 0
    attempts: int = 0
    correct: int = 0
    accuracy: float = 0.0
    last_update: datetime | None = None


@dataclass(slots=True)
class GameScoreRecord:
    """Running totals for one user inside one named game."""

    user_id: int
    game_name: str
    score: int = 0
    attempts: int = 0
    correct: int = 0
    accuracy: float = 0.0
    last_update: datetime | None = None


@dataclass(slots=True)
class AggregateTotals:
    """Totals returned after an answer has been persisted."""

    performance: PerformanceRecord
    game_score: GameScoreRecord | None = None


@dataclass(slots=True)
class GameSessionRecord:
    """Teacher-created game addressable by a short join code."""

    game_id: int
    game_name: str
    game_code: str
    teacher_user_id: int | None = None
    created_at: datetime | None = None


@dataclass(slots=True)
class LeaderboardRow:
    user_id: int
    display_name: str | None
    score: int
    attempts: int = 0
    correct: int = 0
    accuracy: float = 0.0
    last_update: datetime | None = None


@dataclass(slots=True)
class ImportRowError:
    row: int
    error: str
    raw: dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class ImportReport:
    """Outcome of a bulk question import; valid rows commit independently."""

    parsed_rows: int
    inserted: int
    skipped: int
    errors: list[ImportRowError] = field(default_factory=list)
    question_ids: list[int] = field(default_factory=list)
