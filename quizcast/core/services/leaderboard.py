"""Service for leaderboard queries and background leaderboard broadcasts."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
import logging

from quizcast.constants.quiz_constants import BROADCAST_LEADERBOARD_LIMIT, DEFAULT_LEADERBOARD_LIMIT
from quizcast.core.errors import InvalidInputError
from quizcast.core.events import (
    EventSink,
    GameLeaderboardEvent,
    GlobalLeaderboardEvent,
    LeaderboardEntry,
)
from quizcast.core.models import LeaderboardRow
from quizcast.storage.store import QuizStore

logger = logging.getLogger(__name__)


class LeaderboardService:
    """Read-only rankings computed from the store on demand."""

    def __init__(self, store: QuizStore) -> None:
        self._store = store

    def global_top(self, limit: int = DEFAULT_LEADERBOARD_LIMIT) -> list[LeaderboardRow]:
        return self._store.global_leaderboard(_check_limit(limit))

    def game_top(self, game_id: int, limit: int = DEFAULT_LEADERBOARD_LIMIT) -> list[LeaderboardRow]:
        return self._store.game_leaderboard(game_id, _check_limit(limit))

    def named_game_top(self, game_name: str, limit: int = DEFAULT_LEADERBOARD_LIMIT) -> list[LeaderboardRow]:
        if not game_name or not game_name.strip():
            raise InvalidInputError("game_name required")
        return self._store.named_game_leaderboard(game_name.strip(), _check_limit(limit))


class LeaderboardPublisher:
    """Recomputes leaderboards off the request path and publishes snapshots.

    Jobs run one at a time on a private worker thread; a failing job is logged
    and dropped.
    """

    def __init__(
        self,
        store: QuizStore,
        sink: EventSink,
        limit: int = BROADCAST_LEADERBOARD_LIMIT,
    ) -> None:
        self._store = store
        self._leaderboard = LeaderboardService(store)
        self._sink = sink
        self._limit = _check_limit(limit)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="LeaderboardPublisher")
        self._closed = False

    def refresh_global(self) -> Future | None:
        return self._submit(self._publish_global, "global")

    def refresh_game(self, game_name: str) -> Future | None:
        return self._submit(lambda: self._publish_game(game_name), f"game '{game_name}'")

    def shutdown(self, wait: bool = False) -> None:
        self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=not wait)

    def _submit(self, job, label: str) -> Future | None:
        if self._closed:
            return None

        def run() -> None:
            try:
                job()
            except Exception:
                logger.exception("broadcast %s leaderboard error", label)

        try:
            return self._executor.submit(run)
        except RuntimeError:
            logger.warning("Leaderboard publisher is shut down; %s refresh dropped", label)
            return None

    def _publish_global(self) -> None:
        rows = self._leaderboard.global_top(self._limit)
        self._sink.publish(
            GlobalLeaderboardEvent(players=[LeaderboardEntry.from_row(row) for row in rows])
        )

    def _publish_game(self, game_name: str) -> None:
        game = self._store.find_game_by_name(game_name)
        if game is not None:
            rows = self._leaderboard.game_top(game.game_id, self._limit)
            game_id = game.game_id
        else:
            rows = self._leaderboard.named_game_top(game_name, self._limit)
            game_id = None
        self._sink.publish(
            GameLeaderboardEvent(
                game_id=game_id,
                game_name=game_name,
                players=[LeaderboardEntry.from_row(row) for row in rows],
            )
        )


def _check_limit(limit: int) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise InvalidInputError("limit must be a positive integer")
    return limit
