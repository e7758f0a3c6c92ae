"""Typed access to sessions, participants and answers in the document store."""

from __future__ import annotations

from typing import Callable, TypeVar

from live_quiz.constants.session_constants import STORE_RETRY_ATTEMPTS
from live_quiz.core import schema
from live_quiz.core.models import Answer, Participant, Session, SessionStatus
from live_quiz.core.store import DocumentStore
from live_quiz.utils.retry import call_with_retries

T = TypeVar("T")

_OPEN_STATUSES = frozenset({SessionStatus.WAITING.value, SessionStatus.ACTIVE.value})


class SessionRepository:
    """Reads go through schema migration; every call is retried on transient errors."""

    def __init__(self, store: DocumentStore, retry_attempts: int = STORE_RETRY_ATTEMPTS) -> None:
        self._store = store
        self._retry_attempts = retry_attempts

    @property
    def store(self) -> DocumentStore:
        return self._store

    # --- Sessions ---

    def add_session(self, session: Session) -> None:
        record = schema.session_to_record(session)
        self._call(lambda: self._store.add(schema.SESSIONS, record, record_id=session.id), "create session")

    def save_session(self, session: Session) -> None:
        record = schema.session_to_record(session)
        self._call(lambda: self._store.set(schema.SESSIONS, session.id, record), "save session")

    def update_session_fields(self, session_id: str, **changes: object) -> None:
        self._call(lambda: self._store.update(schema.SESSIONS, session_id, changes), "update session")

    def get_session(self, session_id: str) -> Session | None:
        record = self._call(lambda: self._store.get(schema.SESSIONS, session_id), "load session")
        return schema.session_from_record(record) if record is not None else None

    def find_open_session_by_code(self, join_code: str) -> Session | None:
        records = self._call(
            lambda: self._store.query(
                schema.SESSIONS,
                where={"join_code": join_code, "status": _OPEN_STATUSES},
                order_by="created_at",
                descending=True,
            ),
            "find session by code",
        )
        return schema.session_from_record(records[0]) if records else None

    def is_join_code_in_use(self, join_code: str) -> bool:
        return self.find_open_session_by_code(join_code) is not None

    def list_sessions(self, status: SessionStatus | None = None, owner_id: str | None = None) -> list[Session]:
        where: dict[str, object] = {}
        if status is not None:
            where["status"] = status.value
        if owner_id is not None:
            where["owner_id"] = owner_id
        records = self._call(
            lambda: self._store.query(schema.SESSIONS, where=where, order_by="created_at", descending=True),
            "list sessions",
        )
        return [schema.session_from_record(r) for r in records]

    def delete_session(self, session_id: str) -> bool:
        return self._call(lambda: self._store.delete(schema.SESSIONS, session_id), "delete session")

    # --- Participants ---

    def add_participant(self, participant: Participant) -> None:
        record = schema.participant_to_record(participant)
        self._call(
            lambda: self._store.add(schema.PARTICIPANTS, record, record_id=participant.id),
            "add participant",
        )

    def save_participant(self, participant: Participant) -> None:
        record = schema.participant_to_record(participant)
        self._call(lambda: self._store.set(schema.PARTICIPANTS, participant.id, record), "save participant")

    def get_participant(self, participant_id: str) -> Participant | None:
        record = self._call(lambda: self._store.get(schema.PARTICIPANTS, participant_id), "load participant")
        return schema.participant_from_record(record) if record is not None else None

    def list_participants(self, session_id: str) -> list[Participant]:
        records = self._call(
            lambda: self._store.query(schema.PARTICIPANTS, where={"session_id": session_id}, order_by="joined_at"),
            "list participants",
        )
        return [schema.participant_from_record(r) for r in records]

    def delete_participant(self, participant_id: str) -> bool:
        return self._call(lambda: self._store.delete(schema.PARTICIPANTS, participant_id), "remove participant")

    # --- Answers ---

    def add_answer(self, answer: Answer) -> None:
        record = schema.answer_to_record(answer)
        self._call(lambda: self._store.add(schema.ANSWERS, record, record_id=answer.id), "submit answer")

    def list_answers(self, session_id: str, participant_id: str | None = None) -> list[Answer]:
        where: dict[str, object] = {"session_id": session_id}
        if participant_id is not None:
            where["participant_id"] = participant_id
        records = self._call(
            lambda: self._store.query(schema.ANSWERS, where=where, order_by="answered_at"),
            "list answers",
        )
        return [schema.answer_from_record(r) for r in records]

    def delete_records(self, collection: str, session_id: str) -> int:
        """Delete every record of ``collection`` belonging to a session."""
        records = self._call(
            lambda: self._store.query(collection, where={"session_id": session_id}),
            f"list {collection}",
        )
        deleted = 0
        for record in records:
            if self._call(lambda: self._store.delete(collection, record["id"]), f"delete {collection}"):
                deleted += 1
        return deleted

    def _call(self, operation: Callable[[], T], description: str) -> T:
        return call_with_retries(operation, description=description, attempts=self._retry_attempts)
