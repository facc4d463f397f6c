"""Quiz-related constants shared across the session core and the API layer."""

OPTION_LETTERS: tuple[str, ...] = ("A", "B", "C", "D")
DEFAULT_DIFFICULTY: str = "Medium"

BASE_POINTS: int = 10
FIRST_CORRECT_BONUS: int = 5

DEFAULT_QUESTION_WINDOW_MS: int = 30_000
DEFAULT_STARTUP_DELAY_MS: int = 15_000

DEFAULT_LEADERBOARD_LIMIT: int = 10
BROADCAST_LEADERBOARD_LIMIT: int = 20

GAME_CODE_LENGTH: int = 6
GAME_CODE_MAX_ATTEMPTS: int = 20
GAME_CODE_FALLBACK_PREFIX: str = "QC"

# Primary keys are SQLite 64-bit signed INTEGERs.
MAX_ROW_ID: int = 2**63 - 1

ANSWER_CHANNEL_LIVE: str = "live"
ANSWER_CHANNEL_API: str = "api"
