"""Short join codes for teacher-created game sessions."""

from __future__ import annotations

from collections.abc import Callable
import logging
import random
import string
import time

from quizcast.constants.quiz_constants import (
    GAME_CODE_FALLBACK_PREFIX,
    GAME_CODE_LENGTH,
    GAME_CODE_MAX_ATTEMPTS,
)

logger = logging.getLogger(__name__)

_CODE_ALPHABET = string.ascii_uppercase + string.digits


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


class GameCodeIssuer:
    """Generates random codes, retrying on collision before falling back."""

    def __init__(
        self,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
        length: int = GAME_CODE_LENGTH,
        max_attempts: int = GAME_CODE_MAX_ATTEMPTS,
    ) -> None:
        self._rng = rng or random.SystemRandom()
        self._clock = clock
        self._length = length
        self._max_attempts = max_attempts

    def candidate(self) -> str:
        return "".join(self._rng.choice(_CODE_ALPHABET) for _ in range(self._length))

    def fallback(self) -> str:
        millis = str(int(self._clock() * 1000))
        return f"{GAME_CODE_FALLBACK_PREFIX}{millis[-4:]}"

    def issue(self, exists: Callable[[str], bool]) -> str:
        """Return the first candidate ``exists`` rejects; time-based after the bound."""
        for _ in range(self._max_attempts):
            code = self.candidate()
            if not exists(code):
                return code
        code = self.fallback()
        logger.warning(
            "Game code collided %d times; using timestamp code %s",
            self._max_attempts,
            code,
        )
        return code
