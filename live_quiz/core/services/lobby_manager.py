"""Service for managing the participant roster of a live session."""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import uuid4

from live_quiz.core.errors import ParticipantNotFoundError
from live_quiz.core.models import Participant, Session, utc_now
from live_quiz.core.services.game_session import GameSession
from live_quiz.core.services.session_repository import SessionRepository

logger = logging.getLogger(__name__)


def normalize_display_name(display_name: str) -> str:
    return " ".join(display_name.split())


class LobbyManager:
    """Registers participants and removes them again when the presenter kicks them."""

    def __init__(self, repository: SessionRepository) -> None:
        self._repository = repository

    def register_participant(
        self,
        session: Session,
        display_name: str,
        now: datetime | None = None,
    ) -> tuple[Participant, bool]:
        """Join ``session`` under ``display_name``.

        Returns the participant and whether a new record was created. A name
        that matches an existing participant (ignoring case and surrounding
        whitespace) rejoins as that participant.
        """
        name = normalize_display_name(display_name)
        if not name:
            raise ValueError("Please enter your name to join.")
        GameSession(session).ensure_accepting_joins()

        existing = self.find_by_name(session.id, name)
        if existing is not None:
            logger.info("Participant %s rejoined session %s", existing.id, session.id)
            return existing, False

        joined_at = now or utc_now()
        participant = Participant(
            id=uuid4().hex,
            session_id=session.id,
            name=name,
            joined_at=joined_at,
            last_activity=joined_at,
        )
        self._repository.add_participant(participant)
        logger.info("Participant %s joined session %s", participant.id, session.id)
        return participant, True

    def find_by_name(self, session_id: str, display_name: str) -> Participant | None:
        wanted = normalize_display_name(display_name).casefold()
        return next(
            (p for p in self.get_participants(session_id) if p.name.casefold() == wanted),
            None,
        )

    def get_participants(self, session_id: str) -> list[Participant]:
        """Return participants in the order they joined."""
        return self._repository.list_participants(session_id)

    def get_participant(self, session_id: str, participant_id: str) -> Participant:
        participant = self._repository.get_participant(participant_id)
        if participant is None or participant.session_id != session_id:
            raise ParticipantNotFoundError("You are no longer part of this session.")
        return participant

    def remove_participant(self, session_id: str, participant_id: str) -> Participant:
        """Delete the participant record; their answers stay but no longer count."""
        participant = self.get_participant(session_id, participant_id)
        self._repository.delete_participant(participant_id)
        logger.info("Participant %s removed from session %s", participant_id, session_id)
        return participant
