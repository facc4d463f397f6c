from __future__ import annotations

import time

import pytest

from quizcast.core.errors import InvalidInputError, NotFoundError
from quizcast.core.quiz_manager import QuizManager
from quizcast.utils.settings import Settings


def _wait_for(sink, event_type: str, count: int = 1, timeout: float = 5.0) -> list:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        events = sink.of_type(event_type)
        if len(events) >= count:
            return events
        time.sleep(0.01)
    return sink.of_type(event_type)


def test_start_loads_catalog(manager):
    assert [question.text for question in manager.get_loaded_questions()] == [
        "Capital of France?",
        "What is $2 + 2$?",
    ]


def test_live_correct_answer_broadcasts_global_leaderboard(manager, sink, users):
    manager.session.advance()

    manager.submit_live_answer(users["bob"], "Paris")
    manager.submit_live_answer(users["carol"], "Rome")

    (event,) = _wait_for(sink, "leaderboard-global")
    assert event.players[0].user_id == users["bob"]
    assert sink.of_type("leaderboard-game") == []


def test_live_session_bound_to_game_broadcasts_game_board(store, sink, question_ids, users):
    manager = QuizManager(store, sink, Settings(startup_delay_ms=60_000, live_game_name="Period 3"))
    manager.start(run_sequencer=False)
    try:
        manager.session.advance()
        manager.submit_live_answer("uid-alice", "Paris")
        (event,) = _wait_for(sink, "leaderboard-game")
    finally:
        manager.shutdown()

    assert event.game_name == "Period 3"
    assert event.game_id is None
    assert [(player.user_id, player.score) for player in event.players] == [(users["alice"], 15)]


def test_recorded_answer_in_game_refreshes_both_boards(manager, sink, users, question_ids):
    game = manager.create_game("Quiz Night", teacher_id=users["alice"])
    manager.join_game("uid-bob", game.game_id)
    _wait_for(sink, "leaderboard-game")

    manager.submit_answer(users["bob"], question_ids[0], "Paris", game_name="Quiz Night")

    game_events = _wait_for(sink, "leaderboard-game", count=2)
    assert _wait_for(sink, "leaderboard-global")
    latest = game_events[-1]
    assert latest.game_id == game.game_id
    assert [(player.user_id, player.score) for player in latest.players] == [(users["bob"], 15)]


def test_join_game_validation(manager, users):
    with pytest.raises(InvalidInputError):
        manager.join_game(None, 1)
    with pytest.raises(NotFoundError, match="user not found"):
        manager.join_game("uid-nobody", 1)
    with pytest.raises(NotFoundError):
        manager.join_game(users["alice"], 999)


def test_upsert_user_requires_uid(manager):
    with pytest.raises(InvalidInputError):
        manager.upsert_user("  ")
    assert manager.upsert_user(" uid-zed ", display_name="Zed").uid == "uid-zed"


def test_shutdown_stops_running_sequencer(store, sink, question_ids):
    manager = QuizManager(store, sink, Settings(startup_delay_ms=60_000))
    manager.start()
    assert manager.sequencer.is_running()

    manager.shutdown()

    assert not manager.sequencer.is_running()
    assert manager.publisher.refresh_global() is None
