from __future__ import annotations

import pytest

from quizcast.utils.settings import Settings


def test_defaults_when_environment_is_empty():
    settings = Settings.from_env({})

    assert settings == Settings()
    assert settings.question_window_ms == 30_000
    assert settings.startup_delay_ms == 15_000
    assert settings.leaderboard_limit == 20
    assert settings.live_game_name is None


def test_reads_prefixed_variables():
    settings = Settings.from_env(
        {
            "QUIZCAST_DATABASE_URL": "sqlite:///:memory:",
            "QUIZCAST_HOST": "127.0.0.1",
            "QUIZCAST_PORT": "9000",
            "QUIZCAST_QUESTION_TIMEOUT_MS": "5000",
            "QUIZCAST_STARTUP_DELAY_MS": "0",
            "QUIZCAST_LEADERBOARD_LIMIT": "5",
            "QUIZCAST_LIVE_GAME_NAME": " Period 3 ",
            "QUIZCAST_LOG_LEVEL": "debug",
        }
    )

    assert settings.database_url == "sqlite:///:memory:"
    assert settings.host == "127.0.0.1"
    assert settings.port == 9000
    assert settings.question_window_ms == 5000
    assert settings.startup_delay_ms == 0
    assert settings.leaderboard_limit == 5
    assert settings.live_game_name == "Period 3"
    assert settings.log_level == "DEBUG"


def test_blank_values_fall_back_to_defaults():
    settings = Settings.from_env({"QUIZCAST_PORT": "  ", "QUIZCAST_LIVE_GAME_NAME": ""})

    assert settings.port == 8000
    assert settings.live_game_name is None


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("QUIZCAST_PORT", "eighty"),
        ("QUIZCAST_QUESTION_TIMEOUT_MS", "0"),
        ("QUIZCAST_STARTUP_DELAY_MS", "-1"),
        ("QUIZCAST_LEADERBOARD_LIMIT", "-3"),
    ],
)
def test_invalid_numbers_raise(name, value):
    with pytest.raises(ValueError, match=name):
        Settings.from_env({name: value})
