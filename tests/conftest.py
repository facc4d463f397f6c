from __future__ import annotations

from threading import Lock

import pytest
from sqlalchemy import create_engine

from quizcast.core.models import QuestionDraft
from quizcast.core.quiz_manager import QuizManager
from quizcast.core.services.live_session import LiveSession
from quizcast.core.services.question_catalog import QuestionCatalog
from quizcast.storage.store import QuizStore
from quizcast.utils.settings import Settings


class RecordingSink:
    """Event sink that keeps everything published, in order."""

    def __init__(self) -> None:
        self.events = []
        self._lock = Lock()

    def publish(self, event) -> None:
        with self._lock:
            self.events.append(event)

    def types(self) -> list[str]:
        with self._lock:
            return [event.type for event in self.events]

    def of_type(self, event_type: str) -> list:
        with self._lock:
            return [event for event in self.events if event.type == event_type]


def make_draft(
    text: str = "Capital of France?",
    options: tuple[str, str, str, str] = ("Paris", "London", "Rome", "Berlin"),
    correct: str = "Paris",
    difficulty: str = "Easy",
) -> QuestionDraft:
    return QuestionDraft(text=text, options=options, correct=correct, difficulty=difficulty)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'quiz.db'}",
        connect_args={"check_same_thread": False},
    )
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine) -> QuizStore:
    store = QuizStore(engine)
    store.create_schema()
    return store


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def question_ids(store) -> list[int]:
    return store.insert_questions(
        [
            make_draft(),
            make_draft("What is $2 + 2$?", ("3", "4", "5", "22"), "4", "Medium"),
        ]
    )


@pytest.fixture
def users(store) -> dict[str, int]:
    return {
        name: store.upsert_user(uid=f"uid-{name}", display_name=name.title()).user_id
        for name in ("alice", "bob", "carol")
    }


@pytest.fixture
def catalog(store, question_ids) -> QuestionCatalog:
    catalog = QuestionCatalog(store)
    catalog.reload()
    return catalog


@pytest.fixture
def session(store, sink, catalog) -> LiveSession:
    return LiveSession(store, catalog.snapshot, sink)


@pytest.fixture
def manager(store, sink, question_ids):
    manager = QuizManager(store, sink, Settings(startup_delay_ms=60_000, question_window_ms=60_000))
    manager.start(run_sequencer=False)
    yield manager
    manager.shutdown()
