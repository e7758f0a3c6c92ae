"""Client-side view of one live session.

A :class:`SessionHandle` is what a presenter screen or a participant device
holds while it shows a session. It owns its store subscriptions for exactly
as long as it is open and turns store changes into typed events on its own
:class:`EventBus`.

Two input sources feed the same state: store pushes and, optionally, a
polling thread that re-reads the records every few seconds. Both go through
the ``apply_*`` methods, which ignore snapshots that change nothing, so either
source can be switched off without affecting behaviour.

Architecture note:
    Participants never compute the countdown. ``time_remaining`` is copied
    verbatim from the last value the timer authority wrote to the session.
"""

from __future__ import annotations

import logging
from threading import Event, Lock, Thread
from typing import Any, Callable, Mapping, TypeVar

from live_quiz.constants.session_constants import STORE_RETRY_ATTEMPTS
from live_quiz.core import schema
from live_quiz.core.errors import LiveQuizError
from live_quiz.core.events import (
    EventBus,
    ParticipantRemoved,
    RosterChanged,
    SessionCompleted,
    SessionEvent,
    SessionStarted,
    SessionUpdated,
)
from live_quiz.core.models import Participant, Session, SessionStatus
from live_quiz.core.store import DocumentStore, Unsubscribe
from live_quiz.utils.retry import call_with_retries

T = TypeVar("T")

logger = logging.getLogger(__name__)

PRESENTER = "presenter"
PARTICIPANT = "participant"


class SessionHandle:
    """Scoped subscription to one session; use it as a context manager."""

    def __init__(
        self,
        store: DocumentStore,
        session_id: str,
        participant_id: str | None = None,
        poll_interval_seconds: float | None = None,
        retry_attempts: int = STORE_RETRY_ATTEMPTS,
    ) -> None:
        self._store = store
        self._session_id = session_id
        self._participant_id = participant_id
        self._poll_interval = poll_interval_seconds
        self._retry_attempts = retry_attempts
        self._events = EventBus()

        self._lock = Lock()
        self._session: Session | None = None
        self._session_deleted = False
        self._roster: tuple[Participant, ...] = ()
        self._kicked = False

        self._unsubscribers: list[Unsubscribe] = []
        self._halt = Event()
        self._poller: Thread | None = None

    # --- Properties ---

    @property
    def role(self) -> str:
        return PARTICIPANT if self._participant_id else PRESENTER

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def participant_id(self) -> str | None:
        return self._participant_id

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def session(self) -> Session | None:
        with self._lock:
            return self._session

    @property
    def status(self) -> SessionStatus | None:
        session = self.session
        return session.status if session is not None else None

    @property
    def time_remaining(self) -> int | None:
        session = self.session
        return session.time_remaining if session is not None else None

    @property
    def participants(self) -> list[Participant]:
        with self._lock:
            return list(self._roster)

    @property
    def kicked(self) -> bool:
        return self._kicked

    @property
    def session_deleted(self) -> bool:
        return self._session_deleted

    @property
    def is_open(self) -> bool:
        return bool(self._unsubscribers)

    # --- Lifecycle ---

    def open(self) -> SessionHandle:
        if self._unsubscribers:
            return self
        self._unsubscribers.append(
            self._store.subscribe_record(schema.SESSIONS, self._session_id, self.apply_session_snapshot)
        )
        self._unsubscribers.append(
            self._store.subscribe_query(
                schema.PARTICIPANTS,
                self.apply_roster_snapshot,
                where={"session_id": self._session_id},
                order_by="joined_at",
            )
        )
        if self._participant_id is not None:
            self._unsubscribers.append(
                self._store.subscribe_record(
                    schema.PARTICIPANTS, self._participant_id, self.apply_participant_snapshot
                )
            )
        if self._poll_interval:
            self._halt.clear()
            self._poller = Thread(target=self._poll_loop, name=f"SessionPoll-{self._session_id}", daemon=True)
            self._poller.start()
        logger.debug("Opened %s handle for session %s", self.role, self._session_id)
        return self

    def close(self) -> None:
        self._halt.set()
        unsubscribers, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in unsubscribers:
            unsubscribe()
        poller, self._poller = self._poller, None
        if poller is not None and poller.is_alive():
            poller.join(timeout=1.0)
        logger.debug("Closed %s handle for session %s", self.role, self._session_id)

    def __enter__(self) -> SessionHandle:
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # --- Input sources ---

    def poll(self) -> None:
        """Re-read every watched record and apply it like a push update."""
        session_record = self._read(lambda: self._store.get(schema.SESSIONS, self._session_id))
        self.apply_session_snapshot(session_record)
        roster = self._read(
            lambda: self._store.query(
                schema.PARTICIPANTS, where={"session_id": self._session_id}, order_by="joined_at"
            )
        )
        self.apply_roster_snapshot(roster)
        if self._participant_id is not None:
            own = self._read(lambda: self._store.get(schema.PARTICIPANTS, self._participant_id))
            self.apply_participant_snapshot(own)

    def apply_session_snapshot(self, record: Mapping[str, Any] | Session | None) -> bool:
        """Adopt a session snapshot. Returns True if anything visible changed.

        Snapshots whose status is behind the current one are stale reads and
        are ignored; status only moves forward.
        """
        if record is None:
            return self._mark_session_deleted()
        incoming = record if isinstance(record, Session) else schema.session_from_record(record)

        events: list[SessionEvent] = []
        with self._lock:
            current = self._session
            if current is not None and _is_older(incoming, current):
                return False
            if current is not None and _same_view(current, incoming):
                return False
            self._session = incoming
            previous_status = current.status if current is not None else None

            if incoming.status is not previous_status:
                if incoming.status is SessionStatus.ACTIVE and incoming.started_at is not None:
                    events.append(
                        SessionStarted(
                            incoming.id,
                            started_at=incoming.started_at,
                            time_limit_seconds=incoming.quiz.time_limit_seconds,
                        )
                    )
                elif incoming.status is SessionStatus.COMPLETED and previous_status is not None:
                    events.append(SessionCompleted(incoming.id, ended_at=incoming.ended_at or incoming.created_at))
            events.append(
                SessionUpdated(
                    incoming.id,
                    status=incoming.status,
                    time_remaining=incoming.time_remaining,
                    last_timer_update=incoming.last_timer_update,
                )
            )
        self._events.publish_all(events)
        return True

    def apply_roster_snapshot(self, records: list[Mapping[str, Any]] | list[Participant]) -> bool:
        roster = tuple(
            r if isinstance(r, Participant) else schema.participant_from_record(r) for r in records
        )
        with self._lock:
            if [p.id for p in roster] == [p.id for p in self._roster]:
                self._roster = roster
                return False
            self._roster = roster
        self._events.publish(RosterChanged(self._session_id, participant_ids=tuple(p.id for p in roster)))
        return True

    def apply_participant_snapshot(self, record: Mapping[str, Any] | None) -> bool:
        """Watch the handle's own participant record; its absence means a kick."""
        if record is not None or self._participant_id is None:
            return False
        with self._lock:
            if self._kicked:
                return False
            self._kicked = True
        logger.info("Participant %s is no longer part of session %s", self._participant_id, self._session_id)
        self._events.publish(ParticipantRemoved(self._session_id, participant_id=self._participant_id))
        return True

    # --- Internals ---

    def _mark_session_deleted(self) -> bool:
        with self._lock:
            if self._session_deleted:
                return False
            self._session_deleted = True
        logger.info("Session %s no longer exists", self._session_id)
        return True

    def _read(self, operation: Callable[[], T]) -> T:
        return call_with_retries(operation, description="refresh session view", attempts=self._retry_attempts)

    def _poll_loop(self) -> None:
        while not self._halt.wait(self._poll_interval):
            try:
                self.poll()
            except (LiveQuizError, ValueError):
                logger.exception("Polling session %s failed", self._session_id)


def _same_view(current: Session, incoming: Session) -> bool:
    return (
        current.status is incoming.status
        and current.time_remaining == incoming.time_remaining
        and current.last_timer_update == incoming.last_timer_update
        and current.participant_count == incoming.participant_count
        and current.ended_at == incoming.ended_at
    )


def _is_older(incoming: Session, current: Session) -> bool:
    if incoming.status.rank != current.status.rank:
        return incoming.status.rank < current.status.rank
    if incoming.last_timer_update is None or current.last_timer_update is None:
        return False
    return incoming.last_timer_update < current.last_timer_update
