"""Presenter-side countdown: the single writer of a session's remaining time.

Only the presenter's authority computes elapsed time. It writes the result
to the session record once per tick; every other client copies that value
as-is. When the countdown reaches zero the authority stops the session,
exactly once even if a manual stop or another expiry path races it.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from threading import Event, Lock, Thread
from typing import TYPE_CHECKING, Callable

from live_quiz.constants.session_constants import TIMER_TICK_SECONDS
from live_quiz.core.errors import LiveQuizError, SessionNotFoundError
from live_quiz.core.events import SessionCompleted
from live_quiz.core.models import Session, SessionStatus

if TYPE_CHECKING:
    from live_quiz.core.quiz_manager import QuizManager

logger = logging.getLogger(__name__)


def compute_remaining(time_limit_seconds: int, started_at: datetime, now: datetime) -> int:
    """Whole seconds left, clamped to ``[0, time_limit_seconds]``."""
    limit = max(0, int(time_limit_seconds))
    elapsed = math.floor((now - started_at).total_seconds())
    return min(limit, max(0, limit - elapsed))


def is_stale(session: Session, now: datetime, grace_seconds: int) -> bool:
    """True when an active session has outlived its limit plus a grace period.

    Used to complete sessions whose authority disappeared before zero.
    """
    if session.status is not SessionStatus.ACTIVE:
        return False
    started = session.timer_started_at or session.started_at
    if started is None:
        return False
    deadline = started + timedelta(seconds=session.quiz.time_limit_seconds + grace_seconds)
    return now >= deadline


class TimerAuthority:
    """Drives the countdown of one session through the quiz manager."""

    def __init__(
        self,
        manager: "QuizManager",
        session_id: str,
        clock: Callable[[], datetime] | None = None,
        tick_seconds: float = TIMER_TICK_SECONDS,
    ) -> None:
        self._manager = manager
        self._session_id = session_id
        self._clock = clock
        self._tick_seconds = tick_seconds
        self._expired = False
        self._halt = Event()
        self._thread: Thread | None = None

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def expired(self) -> bool:
        return self._expired

    def tick(self, now: datetime | None = None) -> int:
        """Broadcast the remaining time and stop the session when it hits zero."""
        # Without a clock of its own the authority reads the manager's clock.
        if now is None and self._clock is not None:
            now = self._clock()
        remaining = self._manager.broadcast_time_remaining(self._session_id, now)
        if remaining <= 0 and not self._expired:
            logger.info("Timer expired for session %s", self._session_id)
            self._manager.stop_session(self._session_id, now=now)
            self._expired = True
        return remaining

    def start(self) -> Thread:
        """Tick on a background daemon thread until stopped or expired."""
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._halt.clear()
        self._thread = Thread(target=self._run, name=f"TimerAuthority-{self._session_id}", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: float | None = None) -> None:
        self.halt()
        thread = self._thread
        if thread is not None and thread.is_alive():
            thread.join(timeout)

    def halt(self) -> None:
        """Ask the background thread to exit without waiting for it."""
        self._halt.set()

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._halt.is_set():
            try:
                self.tick()
                if self._expired or not self._manager.is_session_active(self._session_id):
                    break
            except SessionNotFoundError:
                logger.warning("Session %s disappeared; timer stopped", self._session_id)
                break
            except LiveQuizError as exc:
                # Store outages are retried on the next tick.
                logger.warning("Timer tick for session %s failed: %s", self._session_id, exc)
            except Exception:
                logger.exception("Timer for session %s crashed; timer stopped", self._session_id)
                break
            self._halt.wait(self._tick_seconds)


class TimerRegistry:
    """One :class:`TimerAuthority` per session for a process acting as presenter.

    Entries are dropped when the session completes, whichever path completed
    it (expiry, a manual stop, a cancel or a stale-session sweep).
    """

    def __init__(self, manager: "QuizManager", tick_seconds: float = TIMER_TICK_SECONDS) -> None:
        self._manager = manager
        self._tick_seconds = tick_seconds
        self._lock = Lock()
        self._authorities: dict[str, TimerAuthority] = {}
        self._unsubscribe = manager.events.subscribe(SessionCompleted, self._on_session_completed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._authorities)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._authorities

    def authority(self, session_id: str) -> TimerAuthority:
        with self._lock:
            authority = self._authorities.get(session_id)
            if authority is None:
                authority = TimerAuthority(self._manager, session_id, tick_seconds=self._tick_seconds)
                self._authorities[session_id] = authority
            return authority

    def start(self, session_id: str) -> TimerAuthority:
        authority = self.authority(session_id)
        authority.start()
        return authority

    def stop(self, session_id: str) -> None:
        with self._lock:
            authority = self._authorities.pop(session_id, None)
        if authority is not None:
            authority.stop(timeout=self._tick_seconds * 2)

    def discard(self, session_id: str) -> None:
        """Forget a session's authority without joining its thread.

        Safe to call from the authority's own thread.
        """
        with self._lock:
            authority = self._authorities.pop(session_id, None)
        if authority is not None:
            authority.halt()

    def stop_all(self) -> None:
        self._unsubscribe()
        with self._lock:
            session_ids = list(self._authorities)
        for session_id in session_ids:
            self.stop(session_id)

    def _on_session_completed(self, event: SessionCompleted) -> None:
        self.discard(event.session_id)
