"""Typed session events and a small publish/subscribe channel.

The session lifecycle and the timer authority publish these events; UI
layers and tests subscribe to them instead of to a particular push SDK.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Callable, TypeVar

from live_quiz.core.models import SessionStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SessionEvent:
    session_id: str


@dataclass(frozen=True, slots=True)
class SessionUpdated(SessionEvent):
    status: SessionStatus
    time_remaining: int | None
    last_timer_update: datetime | None = None


@dataclass(frozen=True, slots=True)
class SessionStarted(SessionEvent):
    started_at: datetime
    time_limit_seconds: int


@dataclass(frozen=True, slots=True)
class SessionCompleted(SessionEvent):
    ended_at: datetime


@dataclass(frozen=True, slots=True)
class RosterChanged(SessionEvent):
    participant_ids: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class ParticipantRemoved(SessionEvent):
    """Sent to the removed participant's own channel; distinct from RosterChanged."""

    participant_id: str


@dataclass(frozen=True, slots=True)
class AnswerRecorded(SessionEvent):
    participant_id: str
    question_id: str
    is_correct: bool


E = TypeVar("E", bound=SessionEvent)
Handler = Callable[[SessionEvent], None]


class EventBus:
    """Delivers events to handlers registered for their type (or a base type)."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> Callable[[], None]:
        with self._lock:
            self._handlers[event_type].append(handler)  # type: ignore[arg-type]

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(event_type, [])
                if handler in handlers:
                    handlers.remove(handler)  # type: ignore[arg-type]

        return unsubscribe

    def publish(self, event: SessionEvent) -> None:
        with self._lock:
            targets = [
                handler
                for event_type, handlers in self._handlers.items()
                if isinstance(event, event_type)
                for handler in handlers
            ]
        for handler in targets:
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler failed for %s", type(event).__name__)

    def publish_all(self, events: list[SessionEvent]) -> None:
        for event in events:
            self.publish(event)
