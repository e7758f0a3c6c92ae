"""Business logic for live quiz sessions shared between presenters, participants and the API."""

from __future__ import annotations

import logging
import random
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Callable, Iterable
from uuid import uuid4

from live_quiz.constants.session_constants import RETENTION_DAYS, STORE_RETRY_ATTEMPTS
from live_quiz.core.errors import SessionNotFoundError
from live_quiz.core.events import (
    AnswerRecorded,
    EventBus,
    ParticipantRemoved,
    RosterChanged,
    SessionEvent,
)
from live_quiz.core.models import (
    Answer,
    Participant,
    ParticipantSummary,
    Question,
    Quiz,
    Session,
    SessionStatus,
    utc_now,
)
from live_quiz.core.quiz_exporter import save_quiz_to_file
from live_quiz.core.quiz_importer import load_quiz_from_file, parse_quiz_text
from live_quiz.core.services.awards import AwardResults, calculate_awards
from live_quiz.core.services.game_session import GameSession
from live_quiz.core.services.join_codes import JoinCodeGenerator, normalize_join_code
from live_quiz.core.services.lobby_manager import LobbyManager
from live_quiz.core.services.quiz_repository import QuizRepository
from live_quiz.core.services.report import SessionReport, build_session_report, export_results_csv
from live_quiz.core.services.retention import PurgeResult, purge_expired_sessions
from live_quiz.core.services.scoreboard import Scoreboard, SessionStatistics
from live_quiz.core.services.scoring import summarize_participant, summarize_session
from live_quiz.core.services.session_repository import SessionRepository
from live_quiz.core.services.timer_authority import compute_remaining, is_stale
from live_quiz.core.store import DocumentStore

logger = logging.getLogger(__name__)


class QuizManager:
    """Facade for quiz services: QuizRepository, LobbyManager, Scoreboard and GameSession.

    Writes are serialized by one lock. Events are published after the lock is
    released and only once the change they describe has been stored.
    """

    def __init__(
        self,
        store: DocumentStore,
        events: EventBus | None = None,
        retry_attempts: int = STORE_RETRY_ATTEMPTS,
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
    ) -> None:
        self._lock = Lock()
        self._clock = clock
        self._store = store
        self._retry_attempts = retry_attempts
        self._events = events or EventBus()

        # Services
        self._sessions = SessionRepository(store, retry_attempts=retry_attempts)
        self._repository = QuizRepository(store, retry_attempts=retry_attempts)
        self._lobby = LobbyManager(self._sessions)
        self._join_codes = JoinCodeGenerator(self._sessions.is_join_code_in_use, rng=rng)

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def store(self) -> DocumentStore:
        return self._store

    # --- Quiz Repository Delegation ---

    def create_quiz(
        self,
        title: str,
        questions: Iterable[Question],
        time_limit_seconds: int | None = None,
        description: str = "",
        owner_id: str | None = None,
    ) -> Quiz:
        with self._lock:
            quiz = self._repository.add_quiz(title, questions, time_limit_seconds, description, owner_id)
        logger.info("Quiz %s created with %d question(s)", quiz.id, len(quiz.questions))
        return quiz

    def get_quiz(self, quiz_id: str) -> Quiz:
        return self._repository.get_quiz(quiz_id)

    def list_quizzes(self, owner_id: str | None = None) -> list[Quiz]:
        return self._repository.list_quizzes(owner_id)

    def update_quiz(
        self,
        quiz_id: str,
        title: str,
        questions: Iterable[Question],
        time_limit_seconds: int | None = None,
        description: str = "",
    ) -> Quiz:
        with self._lock:
            return self._repository.update_quiz(quiz_id, title, questions, time_limit_seconds, description)

    def delete_quiz(self, quiz_id: str) -> None:
        with self._lock:
            self._repository.delete_quiz(quiz_id)

    def import_quiz_file(self, file_path: Path, owner_id: str | None = None) -> Quiz:
        imported = load_quiz_from_file(file_path)
        return self.create_quiz(
            imported.title,
            imported.questions,
            imported.time_limit_seconds,
            imported.description,
            owner_id,
        )

    def import_quiz_text(self, text: str, owner_id: str | None = None) -> Quiz:
        imported = parse_quiz_text(text)
        return self.create_quiz(
            imported.title,
            imported.questions,
            imported.time_limit_seconds,
            imported.description,
            owner_id,
        )

    def export_quiz_file(self, quiz_id: str, file_path: Path) -> Path:
        return save_quiz_to_file(file_path, self.get_quiz(quiz_id))

    # --- Session lifecycle ---

    def create_session(self, quiz_id: str, owner_id: str | None = None, now: datetime | None = None) -> Session:
        """Create a waiting session with a fresh join code and a snapshot of the quiz."""
        with self._lock:
            quiz = self._repository.get_quiz(quiz_id)
            join_code = self._join_codes.generate()
            snapshot = quiz.snapshot()
            session = Session(
                id=uuid4().hex,
                join_code=join_code,
                quiz=snapshot,
                owner_id=owner_id,
                time_remaining=snapshot.time_limit_seconds,
                created_at=now or self._clock(),
            )
            self._sessions.add_session(session)
        logger.info("Session %s created for quiz %s (code %s)", session.id, quiz_id, join_code)
        return session

    def get_session(self, session_id: str) -> Session:
        return self._load_session(session_id)

    def find_session_by_code(self, join_code: str) -> Session:
        """Locate an open session by its join code."""
        session = self._sessions.find_open_session_by_code(normalize_join_code(join_code))
        if session is None:
            raise SessionNotFoundError("Session not found. Check the code and try again.")
        return session

    def session_exists(self, session_id: str) -> bool:
        return self._sessions.get_session(session_id) is not None

    def is_session_active(self, session_id: str) -> bool:
        session = self._sessions.get_session(session_id)
        return session is not None and session.status is SessionStatus.ACTIVE

    def list_sessions(self, status: SessionStatus | None = None, owner_id: str | None = None) -> list[Session]:
        return self._sessions.list_sessions(status=status, owner_id=owner_id)

    def start_session(self, session_id: str, now: datetime | None = None) -> Session:
        return self._transition(session_id, lambda game: game.start(now or self._clock()))

    def stop_session(self, session_id: str, now: datetime | None = None) -> Session:
        return self._transition(session_id, lambda game: game.stop(now or self._clock()))

    def cancel_session(self, session_id: str, now: datetime | None = None) -> Session:
        return self._transition(session_id, lambda game: game.cancel(now or self._clock()))

    def broadcast_time_remaining(self, session_id: str, now: datetime | None = None) -> int:
        """Recompute the countdown from the start instant and write it to the session.

        Returns the remaining seconds. Sessions that are not active are left
        untouched and report their last broadcast value.
        """
        now = now or self._clock()
        with self._lock:
            session = self._load_session(session_id)
            game = GameSession(session)
            if not game.is_active():
                return session.time_remaining or 0
            started = session.timer_started_at or session.started_at or now
            remaining = compute_remaining(session.quiz.time_limit_seconds, started, now)
            game.apply_tick(remaining, now)
            self._sessions.save_session(session)
            events = game.take_events()
        self._events.publish_all(events)
        return remaining

    def expire_stale_sessions(self, grace_seconds: int, now: datetime | None = None) -> list[str]:
        """Complete active sessions whose limit plus ``grace_seconds`` has passed."""
        now = now or self._clock()
        expired: list[str] = []
        for session in self._sessions.list_sessions(status=SessionStatus.ACTIVE):
            if not is_stale(session, now, grace_seconds):
                continue
            logger.warning("Session %s outlived its timer; completing it", session.id)
            self.stop_session(session.id, now=now)
            expired.append(session.id)
        return expired

    # --- Roster ---

    def join_session(self, join_code: str, display_name: str, now: datetime | None = None) -> Participant:
        pending: list[SessionEvent] = []
        with self._lock:
            session = self._sessions.find_open_session_by_code(normalize_join_code(join_code))
            if session is None:
                raise SessionNotFoundError("Session not found. Check the code and try again.")
            participant, created = self._lobby.register_participant(session, display_name, now or self._clock())
            if created:
                pending.append(self._refresh_roster(session.id))
        self._events.publish_all(pending)
        return participant

    def kick_participant(self, session_id: str, participant_id: str) -> Participant:
        """Remove a participant; their own record subscription observes the deletion."""
        with self._lock:
            self._load_session(session_id)
            participant = self._lobby.remove_participant(session_id, participant_id)
            roster_event = self._refresh_roster(session_id)
        self._events.publish(ParticipantRemoved(session_id, participant_id=participant_id))
        self._events.publish(roster_event)
        return participant

    def get_participant(self, session_id: str, participant_id: str) -> Participant:
        return self._lobby.get_participant(session_id, participant_id)

    def get_participants(self, session_id: str) -> list[Participant]:
        self._load_session(session_id)
        return self._lobby.get_participants(session_id)

    # --- Answers ---

    def submit_answer(
        self,
        session_id: str,
        participant_id: str,
        question_id: str,
        selected_answer: str,
        time_taken: int = 0,
        now: datetime | None = None,
    ) -> Answer:
        """Store an answer. Resubmitting replaces the earlier answer for scoring."""
        if time_taken < 0:
            raise ValueError("Time taken cannot be negative.")
        answered_at = now or self._clock()
        with self._lock:
            session = self._load_session(session_id)
            GameSession(session).ensure_accepting_answers()
            participant = self._lobby.get_participant(session_id, participant_id)
            question = session.quiz.question_by_id(question_id)
            if question is None:
                raise ValueError(f"Question {question_id} is not part of this quiz.")
            if selected_answer not in question.options:
                raise ValueError("Selected answer is not one of the question's options.")

            answer = Answer(
                id=uuid4().hex,
                session_id=session_id,
                participant_id=participant_id,
                question_id=question_id,
                selected_answer=selected_answer,
                is_correct=question.is_correct(selected_answer),
                time_taken=time_taken,
                answered_at=answered_at,
            )
            self._sessions.add_answer(answer)
            self._cache_progress(participant, session, answered_at)
        self._events.publish(
            AnswerRecorded(
                session_id,
                participant_id=participant_id,
                question_id=question_id,
                is_correct=answer.is_correct,
            )
        )
        return answer

    def get_answers(self, session_id: str, participant_id: str | None = None) -> list[Answer]:
        return self._sessions.list_answers(session_id, participant_id)

    # --- Scoreboard Delegation ---

    def get_summaries(self, session_id: str) -> list[ParticipantSummary]:
        session = self._load_session(session_id)
        participants = self._lobby.get_participants(session_id)
        return summarize_session(participants, self._sessions.list_answers(session_id), session.quiz)

    def get_leaderboard(self, session_id: str) -> Scoreboard:
        return Scoreboard(self.get_summaries(session_id))

    def get_awards(self, session_id: str) -> AwardResults:
        session = self._load_session(session_id)
        participants = self._lobby.get_participants(session_id)
        summaries = summarize_session(participants, self._sessions.list_answers(session_id), session.quiz)
        return calculate_awards(summaries, session.quiz.question_count)

    def get_statistics(self, session_id: str) -> SessionStatistics:
        return self.get_leaderboard(session_id).statistics()

    def build_report(self, session_id: str) -> SessionReport:
        session = self._load_session(session_id)
        return build_session_report(
            session,
            self._lobby.get_participants(session_id),
            self._sessions.list_answers(session_id),
        )

    def export_results(self, session_id: str, file_path: Path) -> Path:
        return export_results_csv(file_path, self.build_report(session_id))

    # --- Retention ---

    def purge_expired(self, now: datetime | None = None, retention_days: int = RETENTION_DAYS) -> PurgeResult:
        with self._lock:
            return purge_expired_sessions(
                self._store,
                now or self._clock(),
                retention_days=retention_days,
                retry_attempts=self._retry_attempts,
            )

    # --- Internals ---

    def _load_session(self, session_id: str) -> Session:
        session = self._sessions.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} was not found.")
        return session

    def _transition(self, session_id: str, action: Callable[[GameSession], bool]) -> Session:
        with self._lock:
            session = self._load_session(session_id)
            game = GameSession(session)
            if action(game):
                self._sessions.save_session(session)
            events = game.take_events()
        self._events.publish_all(events)
        return session

    def _refresh_roster(self, session_id: str) -> RosterChanged:
        participants = self._lobby.get_participants(session_id)
        self._sessions.update_session_fields(session_id, participant_count=len(participants))
        return RosterChanged(session_id, participant_ids=tuple(p.id for p in participants))

    def _cache_progress(self, participant: Participant, session: Session, now: datetime) -> None:
        answers = self._sessions.list_answers(session.id, participant.id)
        summary = summarize_participant(participant.id, participant.name, answers, session.quiz)
        participant.score = summary.score
        participant.answered_count = summary.answered_count
        participant.avg_time = summary.avg_time
        participant.completed = summary.completed
        participant.last_activity = now
        self._sessions.save_participant(participant)

