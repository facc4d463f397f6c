from __future__ import annotations

import logging

import pytest
from sqlalchemy.orm import Session

from quizcast.core.errors import InvalidInputError, NotFoundError
from quizcast.core.events import GameLeaderboardEvent, GlobalLeaderboardEvent
from quizcast.core.services.answer_recorder import AnswerRecorder
from quizcast.core.services.game_codes import GameCodeIssuer
from quizcast.core.services.leaderboard import LeaderboardPublisher, LeaderboardService
from quizcast.storage.schema import UserRow


@pytest.fixture
def leaderboard(store) -> LeaderboardService:
    return LeaderboardService(store)


@pytest.fixture
def recorder(store) -> AnswerRecorder:
    return AnswerRecorder(store)


@pytest.fixture
def game(store, users):
    return store.create_game_session("Period 3", users["alice"], GameCodeIssuer().issue)


def test_global_includes_users_without_performance_row(engine, leaderboard, users):
    with Session(engine) as db, db.begin():
        db.add(UserRow(uid="uid-dave", display_name="Dave"))

    rows = leaderboard.global_top(10)

    assert [row.display_name for row in rows][-1] == "Dave"
    dave = rows[-1]
    assert (dave.score, dave.attempts, dave.correct, dave.accuracy) == (0, 0, 0, 0.0)
    assert dave.last_update is None


def test_global_orders_by_score_then_earliest_update(leaderboard, recorder, users, question_ids):
    recorder.submit(users["bob"], question_ids[0], "Paris")
    recorder.submit(users["alice"], question_ids[0], "Paris")
    recorder.submit(users["carol"], question_ids[1], "4")

    rows = leaderboard.global_top(10)

    assert [row.user_id for row in rows] == [users["bob"], users["carol"], users["alice"]]
    assert [row.score for row in rows] == [15, 15, 10]


def test_global_limit_caps_rows(leaderboard, users):
    assert len(leaderboard.global_top(2)) == 2
    assert len(leaderboard.global_top(10)) == 3


@pytest.mark.parametrize("limit", [0, -1, True, "5"])
def test_invalid_limit_is_rejected(leaderboard, limit):
    with pytest.raises(InvalidInputError):
        leaderboard.global_top(limit)


def test_game_board_lists_every_participant(store, leaderboard, recorder, users, question_ids, game):
    for name in ("alice", "bob", "carol"):
        store.add_participant(game.game_id, users[name])
    recorder.submit(users["bob"], question_ids[0], "Paris", game_name="Period 3")
    recorder.submit(users["alice"], question_ids[0], "Paris", game_name="Other game")

    rows = leaderboard.game_top(game.game_id)

    assert [row.user_id for row in rows] == [users["bob"], users["alice"], users["carol"]]
    assert [row.score for row in rows] == [15, 0, 0]


def test_game_board_excludes_non_participants(store, leaderboard, recorder, users, question_ids, game):
    store.add_participant(game.game_id, users["alice"])
    recorder.submit(users["bob"], question_ids[0], "Paris", game_name="Period 3")

    rows = leaderboard.game_top(game.game_id)

    assert [row.user_id for row in rows] == [users["alice"]]


def test_game_board_for_missing_game(leaderboard):
    with pytest.raises(NotFoundError):
        leaderboard.game_top(404)


def test_named_board_ranks_score_rows(leaderboard, recorder, users, question_ids):
    recorder.submit(users["carol"], question_ids[0], "Rome", game_name="Quiz Night")
    recorder.submit(users["bob"], question_ids[0], "Paris", game_name="Quiz Night")
    recorder.submit(users["alice"], question_ids[1], "4", game_name="Quiz Night")

    rows = leaderboard.named_game_top(" Quiz Night ")

    assert [row.display_name for row in rows] == ["Bob", "Alice", "Carol"]
    assert leaderboard.named_game_top("Unknown") == []
    with pytest.raises(InvalidInputError):
        leaderboard.named_game_top("  ")


def test_publisher_sends_global_snapshot(store, sink, recorder, users, question_ids):
    recorder.submit(users["alice"], question_ids[0], "Paris")
    publisher = LeaderboardPublisher(store, sink, limit=2)
    try:
        publisher.refresh_global().result(timeout=5)
    finally:
        publisher.shutdown(wait=True)

    (event,) = sink.events
    assert isinstance(event, GlobalLeaderboardEvent)
    assert len(event.players) == 2
    assert event.players[0].user_id == users["alice"]
    assert event.players[0].score == 15


def test_publisher_resolves_game_id_when_session_exists(store, sink, users, game):
    store.add_participant(game.game_id, users["bob"])
    publisher = LeaderboardPublisher(store, sink)
    try:
        publisher.refresh_game("Period 3").result(timeout=5)
        publisher.refresh_game("Ad hoc").result(timeout=5)
    finally:
        publisher.shutdown(wait=True)

    with_session, without_session = sink.events
    assert isinstance(with_session, GameLeaderboardEvent)
    assert with_session.game_id == game.game_id
    assert [player.user_id for player in with_session.players] == [users["bob"]]
    assert without_session.game_id is None
    assert without_session.game_name == "Ad hoc"
    assert without_session.players == []


def test_publisher_logs_failed_jobs(store, sink, monkeypatch, caplog):
    def broken(limit):
        raise RuntimeError("database gone")

    monkeypatch.setattr(store, "global_leaderboard", broken)
    publisher = LeaderboardPublisher(store, sink)

    with caplog.at_level(logging.ERROR, logger="quizcast.core.services.leaderboard"):
        publisher.refresh_global().result(timeout=5)
    publisher.shutdown(wait=True)

    assert sink.events == []
    assert any("broadcast global leaderboard error" in r.getMessage() for r in caplog.records)


def test_publisher_drops_refreshes_after_shutdown(store, sink):
    publisher = LeaderboardPublisher(store, sink)
    publisher.shutdown()

    assert publisher.refresh_global() is None
    assert publisher.refresh_game("Period 3") is None
