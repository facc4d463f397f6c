"""Business logic facade shared by the HTTP and WebSocket endpoints."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import logging

from quizcast.constants.quiz_constants import DEFAULT_LEADERBOARD_LIMIT
from quizcast.core.errors import InvalidInputError, NotFoundError
from quizcast.core.events import EventSink
from quizcast.core.models import (
    GameSessionRecord,
    ImportReport,
    LeaderboardRow,
    QuizQuestion,
    UserRecord,
)
from quizcast.core.services.answer_recorder import AnswerRecorder, RecordedAnswer
from quizcast.core.services.game_codes import GameCodeIssuer, normalize_code
from quizcast.core.services.leaderboard import LeaderboardPublisher, LeaderboardService
from quizcast.core.services.live_session import AnswerOutcome, LiveSession, SessionSnapshot
from quizcast.core.services.question_catalog import QuestionCatalog
from quizcast.core.services.question_sequencer import QuestionSequencer
from quizcast.storage.store import QuizStore
from quizcast.utils.settings import Settings

logger = logging.getLogger(__name__)


class QuizManager:
    """Facade for quiz services: Catalog, LiveSession, Sequencer, Leaderboard, Games."""

    def __init__(
        self,
        store: QuizStore,
        sink: EventSink,
        settings: Settings | None = None,
        code_issuer: GameCodeIssuer | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._store = store

        # Services
        self._catalog = QuestionCatalog(store)
        self._leaderboard = LeaderboardService(store)
        self._publisher = LeaderboardPublisher(store, sink, self._settings.leaderboard_limit)
        self._session = LiveSession(
            store,
            self._catalog.snapshot,
            sink,
            game_name=self._settings.live_game_name,
            on_correct_answer=self._on_live_correct_answer,
        )
        self._sequencer = QuestionSequencer(
            self._session,
            window_ms=self._settings.question_window_ms,
            startup_delay_ms=self._settings.startup_delay_ms,
        )
        self._recorder = AnswerRecorder(store, on_recorded=self._on_answer_recorded)
        self._code_issuer = code_issuer or GameCodeIssuer()

    @property
    def session(self) -> LiveSession:
        return self._session

    @property
    def sequencer(self) -> QuestionSequencer:
        return self._sequencer

    @property
    def publisher(self) -> LeaderboardPublisher:
        return self._publisher

    # --- Lifecycle ---

    def start(self, run_sequencer: bool = True) -> None:
        self._catalog.reload()
        if run_sequencer:
            self._sequencer.start()

    def shutdown(self) -> None:
        self._sequencer.stop()
        self._publisher.shutdown()

    # --- Catalog Delegation ---

    def reload_questions(self) -> int:
        return self._catalog.reload()

    def get_loaded_questions(self) -> tuple[QuizQuestion, ...]:
        return self._catalog.snapshot()

    def add_question(
        self,
        text: str | None,
        options: Sequence[str | None],
        correct: str | None,
        difficulty: str | None = None,
    ) -> int:
        return self._catalog.add_question(text, options, correct, difficulty)

    def import_questions(self, rows: Sequence[Mapping[str, object]]) -> ImportReport:
        return self._catalog.import_rows(rows)

    # --- Live Session Delegation ---

    def submit_live_answer(self, identity: int | str | None, answer: str | None) -> AnswerOutcome:
        return self._session.submit_answer(identity, answer)

    def get_session_snapshot(self) -> SessionSnapshot:
        return self._session.snapshot()

    # --- Answer Recorder Delegation ---

    def submit_answer(
        self,
        identity: int | str | None,
        question_id: int | None,
        selected: str | None,
        game_name: str | None = None,
    ) -> RecordedAnswer:
        return self._recorder.submit(identity, question_id, selected, game_name)

    # --- Users & Games ---

    def upsert_user(self, uid: str, email: str | None = None, display_name: str | None = None) -> UserRecord:
        if not uid or not uid.strip():
            raise InvalidInputError("uid required")
        return self._store.upsert_user(uid.strip(), email, display_name)

    def create_game(
        self,
        game_name: str,
        teacher_id: int | None = None,
        teacher_uid: str | None = None,
    ) -> GameSessionRecord:
        if not game_name or not game_name.strip():
            raise InvalidInputError("game_name required")
        if teacher_id is None and not teacher_uid:
            raise InvalidInputError("teacher_id or uid required")
        teacher_user_id = self._store.resolve_user(teacher_id if teacher_id is not None else teacher_uid)
        if teacher_user_id is None:
            raise NotFoundError("teacher not found")
        game = self._store.create_game_session(game_name.strip(), teacher_user_id, self._code_issuer.issue)
        logger.info("Created game %s (%s) with code %s", game.game_id, game.game_name, game.game_code)
        return game

    def resolve_game_code(self, code: str | None) -> GameSessionRecord:
        normalized = normalize_code(code)
        if not normalized:
            raise InvalidInputError("code required")
        game = self._store.find_game_by_code(normalized)
        if game is None:
            raise NotFoundError("Invalid game code")
        return game

    def join_game(self, identity: int | str | None, game_id: int) -> int:
        if identity is None or not str(identity).strip():
            raise InvalidInputError("user_id and game_id required")
        user_id = self._store.resolve_user(identity)
        if user_id is None:
            raise NotFoundError("user not found")
        game = self._store.get_game(game_id)
        if game is None:
            raise NotFoundError(f"Game {game_id} does not exist.")
        self._store.add_participant(game.game_id, user_id)
        self._publisher.refresh_game(game.game_name)
        return user_id

    # --- Leaderboard Delegation ---

    def get_global_leaderboard(self, limit: int = DEFAULT_LEADERBOARD_LIMIT) -> list[LeaderboardRow]:
        return self._leaderboard.global_top(limit)

    def get_game_leaderboard(self, game_id: int, limit: int = DEFAULT_LEADERBOARD_LIMIT) -> list[LeaderboardRow]:
        return self._leaderboard.game_top(game_id, limit)

    def get_named_game_leaderboard(self, game_name: str, limit: int = DEFAULT_LEADERBOARD_LIMIT) -> list[LeaderboardRow]:
        return self._leaderboard.named_game_top(game_name, limit)

    # --- Broadcast hooks ---

    def _on_live_correct_answer(self, outcome: AnswerOutcome) -> None:
        self._publisher.refresh_global()
        if self._session.game_name:
            self._publisher.refresh_game(self._session.game_name)

    def _on_answer_recorded(self, recorded: RecordedAnswer, game_name: str | None) -> None:
        self._publisher.refresh_global()
        if game_name:
            self._publisher.refresh_game(game_name)
