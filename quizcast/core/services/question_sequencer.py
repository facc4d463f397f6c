"""Timer that drives the live session through its questions."""

from __future__ import annotations

import logging
from threading import Event, Thread

from quizcast.constants.quiz_constants import DEFAULT_QUESTION_WINDOW_MS, DEFAULT_STARTUP_DELAY_MS
from quizcast.core.services.live_session import LiveSession

logger = logging.getLogger(__name__)


class QuestionSequencer:
    """Advances the session on a fixed cycle until the catalog is exhausted.

    After ``startup_delay_ms`` the first question opens; every
    ``window_ms`` the window closes and the next question opens right away.
    A failing step is logged and the cycle carries on, so one bad advance
    cannot stall the game. ``stop`` ends the schedule at the next wait.
    """

    def __init__(
        self,
        session: LiveSession,
        *,
        window_ms: int = DEFAULT_QUESTION_WINDOW_MS,
        startup_delay_ms: int = DEFAULT_STARTUP_DELAY_MS,
    ) -> None:
        if window_ms <= 0:
            raise ValueError("Question window must be a positive number of milliseconds.")
        if startup_delay_ms < 0:
            raise ValueError("Startup delay cannot be negative.")
        self._session = session
        self._window_seconds = window_ms / 1000
        self._startup_delay_seconds = startup_delay_ms / 1000
        self._stop_event = Event()
        self._thread: Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("Question sequencer has already been started.")
        logger.info("Game starting in %.1f seconds...", self._startup_delay_seconds)
        self._thread = Thread(target=self._run, name="QuestionSequencer", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        if self._stop_event.wait(self._startup_delay_seconds):
            return
        while not self._stop_event.is_set():
            self._step(self._session.advance, "advance")
            if self._session.is_over():
                logger.info("Question sequencer finished")
                return
            if self._stop_event.wait(self._window_seconds):
                return
            self._step(self._session.close_window, "close_window")

    @staticmethod
    def _step(action, name: str) -> None:
        try:
            action()
        except Exception:
            logger.exception("Question sequencer %s failed; continuing with the next step", name)
