"""Network configuration constants for the quiz server."""

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 8000
DEFAULT_DATABASE_URL: str = "sqlite:///quizcast.db"
WEBSOCKET_PATH: str = "/ws"
