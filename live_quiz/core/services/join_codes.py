"""Short human-enterable join codes."""

from __future__ import annotations

import logging
import random
from typing import Callable

from live_quiz.constants.session_constants import (
    JOIN_CODE_ALPHABET,
    JOIN_CODE_LENGTH,
    JOIN_CODE_MAX_ATTEMPTS,
)
from live_quiz.core.errors import JoinCodeExhaustedError

logger = logging.getLogger(__name__)


class JoinCodeGenerator:
    """Draws codes and checks them against open sessions, retrying a bounded number of times."""

    def __init__(
        self,
        is_taken: Callable[[str], bool],
        rng: random.Random | None = None,
        alphabet: str = JOIN_CODE_ALPHABET,
        length: int = JOIN_CODE_LENGTH,
        max_attempts: int = JOIN_CODE_MAX_ATTEMPTS,
    ) -> None:
        if not alphabet:
            raise ValueError("Join code alphabet must not be empty.")
        if length <= 0 or max_attempts <= 0:
            raise ValueError("Join code length and attempts must be positive.")
        self._is_taken = is_taken
        self._rng = rng or random.SystemRandom()
        self._alphabet = alphabet
        self._length = length
        self._max_attempts = max_attempts

    def draw(self) -> str:
        return "".join(self._rng.choice(self._alphabet) for _ in range(self._length))

    def generate(self) -> str:
        """Return an unused code or raise :class:`JoinCodeExhaustedError`."""
        for attempt in range(1, self._max_attempts + 1):
            code = self.draw()
            if not self._is_taken(code):
                return code
            logger.info("Join code collision on attempt %d/%d", attempt, self._max_attempts)
        raise JoinCodeExhaustedError(
            f"Could not allocate a unique join code after {self._max_attempts} attempts. Please try again."
        )


def normalize_join_code(code: str) -> str:
    """Codes are case-insensitive and may be typed with spaces or dashes."""
    return "".join(ch for ch in code.upper() if ch.isalnum())
