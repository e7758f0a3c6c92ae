"""Lifecycle of a single live session: waiting -> active -> completed."""

from __future__ import annotations

import logging
from datetime import datetime

from live_quiz.core.errors import InvalidSessionStateError
from live_quiz.core.events import SessionCompleted, SessionEvent, SessionStarted, SessionUpdated
from live_quiz.core.models import Session, SessionStatus, utc_now

logger = logging.getLogger(__name__)


class GameSession:
    """Applies lifecycle transitions to one session.

    Transitions mutate the wrapped :class:`Session` and queue the events they
    imply. The caller persists the session first and then publishes
    :meth:`take_events`, so listeners never hear about a change that failed
    to reach the store.
    """

    def __init__(self, session: Session) -> None:
        self._session = session
        self._pending: list[SessionEvent] = []

    @property
    def session(self) -> Session:
        return self._session

    @property
    def status(self) -> SessionStatus:
        return self._session.status

    def is_active(self) -> bool:
        return self._session.status is SessionStatus.ACTIVE

    def start(self, now: datetime | None = None) -> bool:
        """Open the session for answers. Returns False if it was already running."""
        status = self._session.status
        if status is SessionStatus.ACTIVE:
            return False
        if status is SessionStatus.COMPLETED:
            raise InvalidSessionStateError("A completed session cannot be started again.")

        started_at = now or utc_now()
        limit = self._session.quiz.time_limit_seconds
        self._session.status = SessionStatus.ACTIVE
        self._session.started_at = started_at
        self._session.timer_started_at = started_at
        self._session.time_remaining = limit
        self._session.last_timer_update = started_at
        logger.info("Session %s started (%ss on the clock)", self._session.id, limit)
        self._pending.append(SessionStarted(self._session.id, started_at=started_at, time_limit_seconds=limit))
        self._queue_update()
        return True

    def stop(self, now: datetime | None = None) -> bool:
        """Complete an active session. Stopping a completed session is a no-op."""
        status = self._session.status
        if status is SessionStatus.COMPLETED:
            return False
        if status is SessionStatus.WAITING:
            raise InvalidSessionStateError("A session that has not started cannot be stopped; cancel it instead.")
        self._complete(now or utc_now())
        return True

    def cancel(self, now: datetime | None = None) -> bool:
        """End a session that never started."""
        status = self._session.status
        if status is SessionStatus.COMPLETED:
            return False
        if status is SessionStatus.ACTIVE:
            raise InvalidSessionStateError("An active session must be stopped, not cancelled.")
        self._complete(now or utc_now())
        return True

    def apply_tick(self, remaining: int, now: datetime) -> bool:
        """Record a timer broadcast. Ignored unless the session is active."""
        if self._session.status is not SessionStatus.ACTIVE:
            return False
        self._session.time_remaining = remaining
        self._session.last_timer_update = now
        self._queue_update()
        return True

    def ensure_accepting_answers(self) -> None:
        if self._session.status is not SessionStatus.ACTIVE:
            raise InvalidSessionStateError(
                f"Answers are only accepted while the session is active (status: {self._session.status.value})."
            )

    def ensure_accepting_joins(self) -> None:
        if self._session.status is SessionStatus.COMPLETED:
            raise InvalidSessionStateError("This session has already ended.")

    def take_events(self) -> list[SessionEvent]:
        events, self._pending = self._pending, []
        return events

    def _complete(self, ended_at: datetime) -> None:
        was_active = self._session.status is SessionStatus.ACTIVE
        self._session.status = SessionStatus.COMPLETED
        self._session.ended_at = ended_at
        if was_active:
            self._session.time_remaining = max(0, self._session.time_remaining or 0)
        logger.info("Session %s completed", self._session.id)
        self._pending.append(SessionCompleted(self._session.id, ended_at=ended_at))
        self._queue_update()

    def _queue_update(self) -> None:
        self._pending.append(
            SessionUpdated(
                self._session.id,
                status=self._session.status,
                time_remaining=self._session.time_remaining,
                last_timer_update=self._session.last_timer_update,
            )
        )
