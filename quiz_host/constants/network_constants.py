"""Network configuration constants for the quiz host."""

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 8000
SESSION_COOKIE_NAME: str = "swiftquiz_session"
SESSION_COOKIE_MAX_AGE: int = 60 * 60 * 24 * 30
ADMIN_TOKEN_HEADER: str = "X-Admin-Token"
STORE_REQUEST_TIMEOUT_SECONDS: float = 10.0
STORE_REST_PATH: str = "/rest/v1"
SESSION_IDLE_TIMEOUT_SECONDS: int = 60 * 60 * 24
RUNNER_IDLE_TIMEOUT_SECONDS: int = 60 * 60
