"""SQLAlchemy-backed persistent store for questions, users, scores and games.

Every public method runs in its own transaction. Database failures are logged,
rolled back and re-raised as :class:`StoreError` so that callers only ever see
the quiz error hierarchy. Aggregates are updated with ``score = score + :delta``
style statements, which keeps concurrent updates from different entry paths
additive instead of last-writer-wins.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
import logging

from sqlalchemy import and_, create_engine, func, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from quizcast.constants.quiz_constants import ANSWER_CHANNEL_API, MAX_ROW_ID, OPTION_LETTERS
from quizcast.core.errors import NotFoundError, StoreError
from quizcast.core.models import (
    AggregateTotals,
    GameScoreRecord,
    GameSessionRecord,
    LeaderboardRow,
    PerformanceRecord,
    QuestionDraft,
    QuizQuestion,
    UserRecord,
)
from quizcast.storage.schema import (
    AnswerEventRow,
    Base,
    GameParticipantRow,
    GameScoreRow,
    GameSessionRow,
    PerformanceRow,
    QuestionRow,
    UserRow,
    utcnow,
)

logger = logging.getLogger(__name__)

CodeIssuer = Callable[[Callable[[str], bool]], str]

_IN_MEMORY_URLS = {"sqlite://", "sqlite:///:memory:"}


def is_row_id(value: object) -> bool:
    """True for an int that fits a 64-bit INTEGER primary key."""
    return isinstance(value, int) and not isinstance(value, bool) and 0 < value <= MAX_ROW_ID


def compute_accuracy(correct: int, attempts: int) -> float:
    """Return correct/attempts as a percentage, 0 when nothing was attempted."""
    if attempts <= 0:
        return 0.0
    return (correct / attempts) * 100


class QuizStore:
    """Query and update operations consumed by the quiz core."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, database_url: str) -> "QuizStore":
        kwargs: dict[str, object] = {}
        if database_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in _IN_MEMORY_URLS:
                kwargs["poolclass"] = StaticPool
        return cls(create_engine(database_url, **kwargs))

    def create_schema(self) -> None:
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            logger.exception("Creating the database schema failed")
            raise StoreError("Could not create the database schema.") from exc

    def dispose(self) -> None:
        self._engine.dispose()

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Session]:
        try:
            with self._session_factory.begin() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.exception("Store operation '%s' failed", operation)
            raise StoreError(f"Store operation '{operation}' failed.") from exc

    # --- Questions ---

    def fetch_questions(self) -> list[QuizQuestion]:
        with self._transaction("fetch_questions") as session:
            rows = session.scalars(select(QuestionRow).order_by(QuestionRow.id)).all()
            return [_to_question(row) for row in rows]

    def get_question(self, question_id: int) -> QuizQuestion | None:
        if not is_row_id(question_id):
            return None
        with self._transaction("get_question") as session:
            row = session.get(QuestionRow, question_id)
            return _to_question(row) if row is not None else None

    def insert_questions(self, drafts: Sequence[QuestionDraft]) -> list[int]:
        """Insert all drafts in one transaction and return their new ids."""
        with self._transaction("insert_questions") as session:
            rows = [_from_draft(draft) for draft in drafts]
            session.add_all(rows)
            session.flush()
            return [row.id for row in rows]

    # --- Users ---

    def upsert_user(
        self,
        uid: str,
        email: str | None = None,
        display_name: str | None = None,
    ) -> UserRecord:
        with self._transaction("upsert_user") as session:
            row = session.scalar(select(UserRow).where(UserRow.uid == uid).limit(1))
            if row is None:
                row = UserRow(uid=uid, email=email, display_name=display_name)
                session.add(row)
                session.flush()
            else:
                if email is not None:
                    row.email = email
                if display_name is not None:
                    row.display_name = display_name
            if session.get(PerformanceRow, row.user_id) is None:
                session.add(PerformanceRow(user_id=row.user_id))
            return UserRecord(
                user_id=row.user_id,
                uid=row.uid,
                email=row.email,
                display_name=row.display_name,
            )

    def resolve_user(self, identity: int | str | None) -> int | None:
        """Resolve a numeric user id or an external uid to the numeric id."""
        if identity is None or isinstance(identity, bool):
            return None
        text = str(identity).strip()
        if not text:
            return None
        with self._transaction("resolve_user") as session:
            if text.isascii() and text.isdigit() and is_row_id(int(text)):
                found = session.scalar(
                    select(UserRow.user_id).where(UserRow.user_id == int(text))
                )
                if found is not None:
                    return found
            return session.scalar(select(UserRow.user_id).where(UserRow.uid == text).limit(1))

    # --- Answers and aggregates ---

    def record_answer(
        self,
        *,
        user_id: int,
        question_id: int,
        selected: str | None,
        correct_answer: str,
        is_correct: bool,
        points: int,
        game_name: str | None = None,
        channel: str = ANSWER_CHANNEL_API,
    ) -> AggregateTotals:
        """Write the answer event and both aggregates atomically.

        ``channel`` tags the path the answer came through; duplicate and
        first-correct checks only look at answers from the same channel.
        """
        now = utcnow()
        correct_delta = 1 if is_correct else 0
        with self._transaction("record_answer") as session:
            session.add(
                AnswerEventRow(
                    user_id=user_id,
                    game_name=game_name,
                    channel=channel,
                    question_id=question_id,
                    selected_answer=selected,
                    correct_answer=correct_answer,
                    is_correct=is_correct,
                    points=points,
                    answered_at=now,
                )
            )
            game_score = None
            if game_name:
                game_row = _apply_game_delta(session, user_id, game_name, points, correct_delta, now)
                game_score = _to_game_score(game_row)
            performance_row = _apply_performance_delta(session, user_id, points, correct_delta, now)
            return AggregateTotals(
                performance=_to_performance(performance_row),
                game_score=game_score,
            )

    def answer_exists(
        self,
        user_id: int,
        question_id: int,
        game_name: str | None,
        channel: str = ANSWER_CHANNEL_API,
    ) -> bool:
        with self._transaction("answer_exists") as session:
            found = session.scalar(
                select(AnswerEventRow.id)
                .where(
                    AnswerEventRow.user_id == user_id,
                    AnswerEventRow.question_id == question_id,
                    AnswerEventRow.channel == channel,
                    _game_name_clause(game_name),
                )
                .limit(1)
            )
            return found is not None

    def correct_answer_exists(
        self,
        question_id: int,
        game_name: str | None,
        channel: str = ANSWER_CHANNEL_API,
    ) -> bool:
        with self._transaction("correct_answer_exists") as session:
            found = session.scalar(
                select(AnswerEventRow.id)
                .where(
                    AnswerEventRow.question_id == question_id,
                    AnswerEventRow.is_correct.is_(True),
                    AnswerEventRow.channel == channel,
                    _game_name_clause(game_name),
                )
                .limit(1)
            )
            return found is not None

    def get_performance(self, user_id: int) -> PerformanceRecord | None:
        with self._transaction("get_performance") as session:
            row = session.get(PerformanceRow, user_id)
            return _to_performance(row) if row is not None else None

    def get_game_score(self, user_id: int, game_name: str) -> GameScoreRecord | None:
        with self._transaction("get_game_score") as session:
            row = session.scalar(
                select(GameScoreRow).where(
                    GameScoreRow.user_id == user_id,
                    GameScoreRow.game_name == game_name,
                )
            )
            return _to_game_score(row) if row is not None else None

    # --- Leaderboards ---

    def global_leaderboard(self, limit: int) -> list[LeaderboardRow]:
        score = func.coalesce(PerformanceRow.score, 0)
        stmt = (
            select(
                UserRow.user_id,
                _display_name().label("display_name"),
                score.label("score"),
                func.coalesce(PerformanceRow.attempts, 0).label("attempts"),
                func.coalesce(PerformanceRow.correct, 0).label("correct"),
                func.coalesce(PerformanceRow.accuracy, 0.0).label("accuracy"),
                PerformanceRow.last_update,
            )
            .select_from(UserRow)
            .outerjoin(PerformanceRow, PerformanceRow.user_id == UserRow.user_id)
            .order_by(
                score.desc(),
                PerformanceRow.last_update.asc().nulls_last(),
                UserRow.user_id.asc(),
            )
            .limit(limit)
        )
        with self._transaction("global_leaderboard") as session:
            return [_to_leaderboard_row(row) for row in session.execute(stmt)]

    def game_leaderboard(self, game_id: int, limit: int) -> list[LeaderboardRow]:
        """Rank the participants of one game session by their score in that game."""
        if not is_row_id(game_id):
            raise NotFoundError(f"Game {game_id} does not exist.")
        with self._transaction("game_leaderboard") as session:
            game = session.get(GameSessionRow, game_id)
            if game is None:
                raise NotFoundError(f"Game {game_id} does not exist.")
            score = func.coalesce(GameScoreRow.score, 0)
            stmt = (
                select(
                    UserRow.user_id,
                    _display_name().label("display_name"),
                    score.label("score"),
                    func.coalesce(GameScoreRow.attempts, 0).label("attempts"),
                    func.coalesce(GameScoreRow.correct, 0).label("correct"),
                    func.coalesce(GameScoreRow.accuracy, 0.0).label("accuracy"),
                    GameScoreRow.last_update,
                )
                .select_from(GameParticipantRow)
                .join(UserRow, UserRow.user_id == GameParticipantRow.user_id)
                .outerjoin(
                    GameScoreRow,
                    and_(
                        GameScoreRow.user_id == UserRow.user_id,
                        GameScoreRow.game_name == game.game_name,
                    ),
                )
                .where(GameParticipantRow.game_id == game_id)
                .order_by(
                    score.desc(),
                    GameScoreRow.last_update.asc().nulls_last(),
                    UserRow.user_id.asc(),
                )
                .limit(limit)
            )
            return [_to_leaderboard_row(row) for row in session.execute(stmt)]

    def named_game_leaderboard(self, game_name: str, limit: int) -> list[LeaderboardRow]:
        stmt = (
            select(
                GameScoreRow.user_id,
                _display_name().label("display_name"),
                GameScoreRow.score,
                GameScoreRow.attempts,
                GameScoreRow.correct,
                GameScoreRow.accuracy,
                GameScoreRow.last_update,
            )
            .select_from(GameScoreRow)
            .outerjoin(UserRow, UserRow.user_id == GameScoreRow.user_id)
            .where(GameScoreRow.game_name == game_name)
            .order_by(
                GameScoreRow.score.desc(),
                GameScoreRow.last_update.asc().nulls_last(),
                GameScoreRow.user_id.asc(),
            )
            .limit(limit)
        )
        with self._transaction("named_game_leaderboard") as session:
            return [_to_leaderboard_row(row) for row in session.execute(stmt)]

    # --- Game sessions ---

    def create_game_session(
        self,
        game_name: str,
        teacher_user_id: int | None,
        issue_code: CodeIssuer,
    ) -> GameSessionRecord:
        """Insert a game session whose code is unique at insert time."""
        with self._transaction("create_game_session") as session:

            def code_exists(code: str) -> bool:
                found = session.scalar(
                    select(GameSessionRow.game_id)
                    .where(func.upper(GameSessionRow.game_code) == code.upper())
                    .limit(1)
                )
                return found is not None

            code = issue_code(code_exists).upper()
            row = GameSessionRow(
                game_name=game_name,
                teacher_user_id=teacher_user_id,
                game_code=code,
            )
            session.add(row)
            session.flush()
            return _to_game(row)

    def find_game_by_code(self, code: str) -> GameSessionRecord | None:
        normalized = code.strip().upper()
        if not normalized:
            return None
        with self._transaction("find_game_by_code") as session:
            row = session.scalar(
                select(GameSessionRow)
                .where(func.upper(GameSessionRow.game_code) == normalized)
                .limit(1)
            )
            return _to_game(row) if row is not None else None

    def find_game_by_name(self, game_name: str) -> GameSessionRecord | None:
        with self._transaction("find_game_by_name") as session:
            row = session.scalar(
                select(GameSessionRow)
                .where(GameSessionRow.game_name == game_name)
                .order_by(GameSessionRow.game_id)
                .limit(1)
            )
            return _to_game(row) if row is not None else None

    def get_game(self, game_id: int) -> GameSessionRecord | None:
        if not is_row_id(game_id):
            return None
        with self._transaction("get_game") as session:
            row = session.get(GameSessionRow, game_id)
            return _to_game(row) if row is not None else None

    def add_participant(self, game_id: int, user_id: int) -> None:
        if not is_row_id(game_id):
            raise NotFoundError(f"Game {game_id} does not exist.")
        with self._transaction("add_participant") as session:
            if session.get(GameSessionRow, game_id) is None:
                raise NotFoundError(f"Game {game_id} does not exist.")
            existing = session.get(GameParticipantRow, (game_id, user_id))
            if existing is None:
                session.add(GameParticipantRow(game_id=game_id, user_id=user_id))
            else:
                existing.joined_at = utcnow()


def _apply_performance_delta(
    session: Session,
    user_id: int,
    points: int,
    correct_delta: int,
    now: datetime,
) -> PerformanceRow:
    result = session.execute(
        update(PerformanceRow)
        .where(PerformanceRow.user_id == user_id)
        .values(
            score=PerformanceRow.score + points,
            attempts=PerformanceRow.attempts + 1,
            correct=PerformanceRow.correct + correct_delta,
            last_update=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        session.add(
            PerformanceRow(
                user_id=user_id,
                score=points,
                attempts=1,
                correct=correct_delta,
                last_update=now,
            )
        )
        session.flush()
    row = session.get(PerformanceRow, user_id, populate_existing=True)
    row.accuracy = compute_accuracy(row.correct, row.attempts)
    session.flush()
    return row


def _apply_game_delta(
    session: Session,
    user_id: int,
    game_name: str,
    points: int,
    correct_delta: int,
    now: datetime,
) -> GameScoreRow:
    result = session.execute(
        update(GameScoreRow)
        .where(GameScoreRow.user_id == user_id, GameScoreRow.game_name == game_name)
        .values(
            score=GameScoreRow.score + points,
            attempts=GameScoreRow.attempts + 1,
            correct=GameScoreRow.correct + correct_delta,
            last_update=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        session.add(
            GameScoreRow(
                user_id=user_id,
                game_name=game_name,
                score=points,
                attempts=1,
                correct=correct_delta,
                last_update=now,
            )
        )
        session.flush()
    row = session.scalars(
        select(GameScoreRow)
        .where(GameScoreRow.user_id == user_id, GameScoreRow.game_name == game_name)
        .execution_options(populate_existing=True)
    ).one()
    row.accuracy = compute_accuracy(row.correct, row.attempts)
    session.flush()
    return row


def _game_name_clause(game_name: str | None):
    if game_name is None:
        return AnswerEventRow.game_name.is_(None)
    return AnswerEventRow.game_name == game_name


def _display_name():
    return func.coalesce(UserRow.display_name, UserRow.email, UserRow.uid)


def _to_question(row: QuestionRow) -> QuizQuestion:
    options = dict(zip(OPTION_LETTERS, (row.option_a, row.option_b, row.option_c, row.option_d)))
    return QuizQuestion(
        id=row.id,
        text=row.text,
        options=options,
        correct=row.correct,
        difficulty=row.difficulty,
    )


def _from_draft(draft: QuestionDraft) -> QuestionRow:
    option_a, option_b, option_c, option_d = draft.options
    return QuestionRow(
        text=draft.text,
        option_a=option_a,
        option_b=option_b,
        option_c=option_c,
        option_d=option_d,
        correct=draft.correct,
        difficulty=draft.difficulty,
    )


def _to_performance(row: PerformanceRow) -> PerformanceRecord:
    return PerformanceRecord(
        user_id=row.user_id,
        score=row.score,
        attempts=row.attempts,
        correct=row.correct,
        accuracy=row.accuracy,
        last_update=row.last_update,
    )


def _to_game_score(row: GameScoreRow) -> GameScoreRecord:
    return GameScoreRecord(
        user_id=row.user_id,
        game_name=row.game_name,
        score=row.score,
        attempts=row.attempts,
        correct=row.correct,
        accuracy=row.accuracy,
        last_update=row.last_update,
    )


def _to_game(row: GameSessionRow) -> GameSessionRecord:
    return GameSessionRecord(
        game_id=row.game_id,
        game_name=row.game_name,
        game_code=row.game_code,
        teacher_user_id=row.teacher_user_id,
        created_at=row.created_at,
    )


def _to_leaderboard_row(row) -> LeaderboardRow:
    return LeaderboardRow(
        user_id=row.user_id,
        display_name=row.display_name,
        score=int(row.score or 0),
        attempts=int(row.attempts or 0),
        correct=int(row.correct or 0),
        accuracy=float(row.accuracy or 0.0),
        last_update=row.last_update,
    )
