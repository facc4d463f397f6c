"""Application entry point for the QuizCast server."""

from __future__ import annotations

from quizcast.core.quiz_manager import QuizManager
from quizcast.server.api_server import run_api_server
from quizcast.server.broadcast import BroadcastHub
from quizcast.storage.store import QuizStore
from quizcast.utils.logging_config import configure_logging
from quizcast.utils.settings import Settings


def main() -> None:
    """Read settings, prepare the database, and serve the API."""
    settings = Settings.from_env()
    logger = configure_logging(settings.log_level)
    logger.info("Starting QuizCast server…")

    store = QuizStore.from_url(settings.database_url)
    store.create_schema()
    hub = BroadcastHub()
    quiz_manager = QuizManager(store=store, sink=hub, settings=settings)

    logger.info("Clients connect to ws://%s:%d/ws", settings.host, settings.port)
    run_api_server(quiz_manager=quiz_manager, hub=hub, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
