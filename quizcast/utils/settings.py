"""Runtime settings read from the environment, with defaults from the constants modules."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import os

from quizcast.constants.network_constants import DEFAULT_DATABASE_URL, DEFAULT_HOST, DEFAULT_PORT
from quizcast.constants.quiz_constants import (
    BROADCAST_LEADERBOARD_LIMIT,
    DEFAULT_QUESTION_WINDOW_MS,
    DEFAULT_STARTUP_DELAY_MS,
)

_ENV_PREFIX = "QUIZCAST_"


@dataclass(frozen=True, slots=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    question_window_ms: int = DEFAULT_QUESTION_WINDOW_MS
    startup_delay_ms: int = DEFAULT_STARTUP_DELAY_MS
    leaderboard_limit: int = BROADCAST_LEADERBOARD_LIMIT
    live_game_name: str | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ

        def read(name: str) -> str | None:
            value = env.get(_ENV_PREFIX + name)
            if value is None or not value.strip():
                return None
            return value.strip()

        return cls(
            database_url=read("DATABASE_URL") or DEFAULT_DATABASE_URL,
            host=read("HOST") or DEFAULT_HOST,
            port=_positive_int(read("PORT"), DEFAULT_PORT, "PORT"),
            question_window_ms=_positive_int(
                read("QUESTION_TIMEOUT_MS"), DEFAULT_QUESTION_WINDOW_MS, "QUESTION_TIMEOUT_MS"
            ),
            startup_delay_ms=_positive_int(
                read("STARTUP_DELAY_MS"), DEFAULT_STARTUP_DELAY_MS, "STARTUP_DELAY_MS", allow_zero=True
            ),
            leaderboard_limit=_positive_int(
                read("LEADERBOARD_LIMIT"), BROADCAST_LEADERBOARD_LIMIT, "LEADERBOARD_LIMIT"
            ),
            live_game_name=read("LIVE_GAME_NAME"),
            log_level=(read("LOG_LEVEL") or "INFO").upper(),
        )


def _positive_int(raw: str | None, default: int, name: str, allow_zero: bool = False) -> int:
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{_ENV_PREFIX}{name} must be an integer, got {raw!r}.") from exc
    if value < 0 or (value == 0 and not allow_zero):
        raise ValueError(f"{_ENV_PREFIX}{name} must be a positive integer.")
    return value
