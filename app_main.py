"""Application entry point for the SwiftQuiz host."""

from __future__ import annotations

import socket

from quiz_host.constants.about import APP_NAME, APP_VERSION
from quiz_host.core.quiz_manager import QuizManager
from quiz_host.core.services.record_store import InMemoryRecordStore, RecordStore
from quiz_host.core.services.rest_record_store import RestRecordStore
from quiz_host.server.api_server import run_api_server
from quiz_host.utils.logging_config import configure_logging
from quiz_host.utils.settings import Settings, load_settings


def _determine_participant_url(port: int) -> str:
    """Best-effort determination of the local IP for the participant-facing URL."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            ip_address = sock.getsockname()[0]
    except OSError:
        ip_address = "127.0.0.1"
    return f"http://{ip_address}:{port}/"


def create_record_store(settings: Settings) -> RecordStore:
    if settings.store_url:
        return RestRecordStore(settings.store_url, api_key=settings.store_key, timeout=settings.store_timeout)
    return InMemoryRecordStore()


def main() -> None:
    """Load settings, initialize logging and serve the participant pages."""
    settings = load_settings()
    logger = configure_logging(settings.log_level, settings.log_file)
    logger.info("Starting %s %s", APP_NAME, APP_VERSION)

    store = create_record_store(settings)
    if settings.store_url:
        logger.info("Using record backend at %s", settings.store_url)
    else:
        logger.warning("No QUIZ_HOST_STORE_URL configured; quizzes are kept in memory only")
    if not settings.admin_token:
        logger.warning("No QUIZ_HOST_ADMIN_TOKEN configured; admin routes are open")

    quiz_manager = QuizManager(store)
    logger.info("Participant page available at %s", _determine_participant_url(settings.port))
    try:
        run_api_server(
            quiz_manager=quiz_manager,
            host=settings.host,
            port=settings.port,
            admin_token=settings.admin_token,
            log_level=settings.log_level,
        )
    finally:
        quiz_manager.close()


if __name__ == "__main__":
    main()
