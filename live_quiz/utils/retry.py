"""Bounded retries for document store calls."""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from live_quiz.constants.session_constants import STORE_RETRY_ATTEMPTS, STORE_RETRY_DELAY_SECONDS
from live_quiz.core.errors import StoreError, StoreUnavailableError

T = TypeVar("T")

logger = logging.getLogger(__name__)


def call_with_retries(
    operation: Callable[[], T],
    *,
    description: str,
    attempts: int = STORE_RETRY_ATTEMPTS,
    delay_seconds: float = STORE_RETRY_DELAY_SECONDS,
) -> T:
    """Run ``operation``, retrying transient store errors a bounded number of times.

    Only :class:`StoreError` is retried. Anything else propagates immediately.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    last_error: StoreError | None = None
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except StoreError as exc:
            last_error = exc
            logger.warning("%s failed (attempt %d/%d): %s", description, attempt, attempts, exc)
            if attempt < attempts and delay_seconds > 0:
                time.sleep(delay_seconds * attempt)
    raise StoreUnavailableError(f"{description} failed after {attempts} attempts") from last_error
