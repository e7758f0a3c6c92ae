"""Exceptions raised by the live quiz core."""

from __future__ import annotations


class LiveQuizError(Exception):
    """Base class for errors surfaced to presenters and participants."""


class SessionNotFoundError(LiveQuizError):
    """Raised when a session lookup by id or join code yields nothing."""


class QuizNotFoundError(LiveQuizError):
    """Raised when a quiz id does not exist in the library."""


class ParticipantNotFoundError(LiveQuizError):
    """Raised when a participant is unknown or was removed from the session."""


class ScratchCardNotFoundError(LiveQuizError):
    """Raised when a scratch card id does not exist."""


class InvalidSessionStateError(LiveQuizError):
    """Raised when an action is attempted outside the state that allows it."""


class JoinCodeExhaustedError(LiveQuizError):
    """Raised when no unique join code could be allocated."""


class StoreError(LiveQuizError):
    """Transient document store failure; callers may retry."""


class StoreUnavailableError(LiveQuizError):
    """Raised once a store operation has exhausted its retries."""
