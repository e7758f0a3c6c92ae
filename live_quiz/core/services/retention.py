"""Removal of completed sessions once they fall outside the retention window.

Quiz definitions are kept; only session data (the session record, its
participants and their answers) is deleted. Scratch card giveaways are swept
the same way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from live_quiz.constants.session_constants import RETENTION_DAYS, STORE_RETRY_ATTEMPTS
from live_quiz.core import schema
from live_quiz.core.models import SessionStatus
from live_quiz.core.services.session_repository import SessionRepository
from live_quiz.core.store import DocumentStore
from live_quiz.utils.retry import call_with_retries

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PurgeResult:
    sessions: int = 0
    participants: int = 0
    answers: int = 0
    scratch_sessions: int = 0
    scratch_participants: int = 0
    scratch_cards: int = 0
    prizes: int = 0

    @property
    def total(self) -> int:
        return (
            self.sessions
            + self.participants
            + self.answers
            + self.scratch_sessions
            + self.scratch_participants
            + self.scratch_cards
            + self.prizes
        )


def retention_cutoff(now: datetime, retention_days: int = RETENTION_DAYS) -> datetime:
    if retention_days < 1:
        raise ValueError("Retention must be at least one day.")
    return now - timedelta(days=retention_days)


def purge_expired_sessions(
    store: DocumentStore,
    now: datetime,
    retention_days: int = RETENTION_DAYS,
    retry_attempts: int = STORE_RETRY_ATTEMPTS,
) -> PurgeResult:
    """Delete completed sessions that ended before ``now - retention_days``.

    Sessions without an end instant are kept; the sweep never guesses.
    """
    cutoff = retention_cutoff(now, retention_days)
    repository = SessionRepository(store, retry_attempts=retry_attempts)

    sessions = participants = answers = 0
    for session in repository.list_sessions(status=SessionStatus.COMPLETED):
        if session.ended_at is None or session.ended_at >= cutoff:
            continue
        answers += repository.delete_records(schema.ANSWERS, session.id)
        participants += repository.delete_records(schema.PARTICIPANTS, session.id)
        if repository.delete_session(session.id):
            sessions += 1

    scratch_sessions = scratch_participants = scratch_cards = prizes = 0
    scratch_records = call_with_retries(
        lambda: store.query(schema.SCRATCH_SESSIONS, where={"status": SessionStatus.COMPLETED.value}),
        description="list scratch sessions",
        attempts=retry_attempts,
    )
    for record in scratch_records:
        scratch = schema.scratch_session_from_record(record)
        if scratch.ended_at is None or scratch.ended_at >= cutoff:
            continue
        scratch_cards += repository.delete_records(schema.SCRATCH_CARDS, scratch.id)
        scratch_participants += repository.delete_records(schema.SCRATCH_PARTICIPANTS, scratch.id)
        prizes += repository.delete_records(schema.PRIZES, scratch.id)
        deleted = call_with_retries(
            lambda: store.delete(schema.SCRATCH_SESSIONS, scratch.id),
            description="delete scratch session",
            attempts=retry_attempts,
        )
        if deleted:
            scratch_sessions += 1

    result = PurgeResult(
        sessions=sessions,
        participants=participants,
        answers=answers,
        scratch_sessions=scratch_sessions,
        scratch_participants=scratch_participants,
        scratch_cards=scratch_cards,
        prizes=prizes,
    )
    logger.info(
        "Retention sweep removed %d session(s) and %d giveaway(s) older than %d days",
        result.sessions,
        result.scratch_sessions,
        retention_days,
    )
    return result
