"""Application entry point for the LiveQuiz service."""

from __future__ import annotations

import socket

from live_quiz.constants.about import APP_NAME, APP_VERSION
from live_quiz.core.config import get_settings
from live_quiz.core.quiz_manager import QuizManager
from live_quiz.core.services.scratch_cards import ScratchCardService
from live_quiz.core.store import InMemoryDocumentStore
from live_quiz.server.api_server import start_api_server
from live_quiz.utils.logging_config import configure_logging


def _determine_participant_url(port: int) -> str:
    """Best-effort determination of the local IP for the participant-facing URL."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            ip_address = sock.getsockname()[0]
    except OSError:
        ip_address = "127.0.0.1"
    return f"http://{ip_address}:{port}/"


def main() -> None:
    """Initialize logging, sweep expired sessions and serve the API until interrupted."""
    settings = get_settings()
    logger = configure_logging(settings.log_level)
    logger.info("Starting %s %s", APP_NAME, APP_VERSION)

    store = InMemoryDocumentStore()
    quiz_manager = QuizManager(store, retry_attempts=settings.store_retry_attempts)
    scratch_service = ScratchCardService(store, retry_attempts=settings.store_retry_attempts)
    quiz_manager.purge_expired(retention_days=settings.retention_days)

    server_thread = start_api_server(
        quiz_manager=quiz_manager,
        scratch_service=scratch_service,
        host=settings.host,
        port=settings.port,
        run_timers=settings.run_server_timers,
        tick_seconds=settings.timer_tick_seconds,
        log_level=settings.log_level,
    )
    logger.info("API available at %s", _determine_participant_url(settings.port))

    try:
        while server_thread.is_alive():
            server_thread.join(timeout=settings.poll_interval_seconds)
            if settings.stale_timer_grace_seconds is not None:
                quiz_manager.expire_stale_sessions(settings.stale_timer_grace_seconds)
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
