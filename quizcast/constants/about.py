"""Static metadata describing QuizCast."""

APP_NAME = "QuizCast"
APP_VERSION = "0.1.0"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "QuizCast runs a live classroom quiz: questions advance on a shared timer, "
    "students answer over a WebSocket, and leaderboards stream to every client."
)

GAME_OVER_MESSAGE = "Game Over! Thanks for playing."
