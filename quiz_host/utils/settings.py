"""Runtime settings read from the environment (and an optional .env file)."""

from __future__ import annotations

from dataclasses import dataclass
import os

from dotenv import load_dotenv

from quiz_host.constants.network_constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    STORE_REQUEST_TIMEOUT_SECONDS,
)


@dataclass(frozen=True, slots=True)
class Settings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"
    log_file: str | None = None
    store_url: str | None = None
    store_key: str | None = None
    store_timeout: float = STORE_REQUEST_TIMEOUT_SECONDS
    admin_token: str | None = None


def load_settings() -> Settings:
    """Build settings from ``QUIZ_HOST_*`` variables. Without a store URL the in-memory store is used."""
    load_dotenv()
    return Settings(
        host=os.getenv("QUIZ_HOST_HOST", DEFAULT_HOST),
        port=int(os.getenv("QUIZ_HOST_PORT", str(DEFAULT_PORT))),
        log_level=os.getenv("QUIZ_HOST_LOG_LEVEL", "INFO"),
        log_file=os.getenv("QUIZ_HOST_LOG_FILE") or None,
        store_url=os.getenv("QUIZ_HOST_STORE_URL") or None,
        store_key=os.getenv("QUIZ_HOST_STORE_KEY") or None,
        store_timeout=float(os.getenv("QUIZ_HOST_STORE_TIMEOUT", str(STORE_REQUEST_TIMEOUT_SECONDS))),
        admin_token=os.getenv("QUIZ_HOST_ADMIN_TOKEN") or None,
    )
