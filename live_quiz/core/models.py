"""Domain models for live quiz sessions and scratch card giveaways."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStatus(str, Enum):
    """Lifecycle of a live session. Values are stored verbatim."""

    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = [SessionStatus.WAITING, SessionStatus.ACTIVE, SessionStatus.COMPLETED]


@dataclass(frozen=True, slots=True)
class Question:
    """Multiple-choice question; the correct answer is one of the option values."""

    id: str
    text: str
    options: tuple[str, ...]
    correct_answer: str
    points: int = 1
    order_index: int = 0

    def is_correct(self, selected_answer: str) -> bool:
        return selected_answer == self.correct_answer


@dataclass(frozen=True, slots=True)
class QuizSnapshot:
    """Denormalized copy of a quiz embedded in a session when it is created."""

    title: str
    questions: tuple[Question, ...]
    time_limit_seconds: int
    description: str = ""
    quiz_id: str | None = None

    def question_by_id(self, question_id: str) -> Question | None:
        return next((q for q in self.questions if q.id == question_id), None)

    @property
    def question_count(self) -> int:
        return len(self.questions)


@dataclass(slots=True)
class Quiz:
    """Editable quiz definition kept in the quiz library."""

    id: str
    title: str
    questions: list[Question]
    time_limit_seconds: int
    description: str = ""
    owner_id: str | None = None
    created_at: datetime = field(default_factory=utc_now)

    def snapshot(self) -> QuizSnapshot:
        ordered = sorted(self.questions, key=lambda q: q.order_index)
        return QuizSnapshot(
            title=self.title,
            questions=tuple(ordered),
            time_limit_seconds=self.time_limit_seconds,
            description=self.description,
            quiz_id=self.id,
        )


@dataclass(slots=True)
class Session:
    """One live run of a quiz."""

    id: str
    join_code: str
    quiz: QuizSnapshot
    status: SessionStatus = SessionStatus.WAITING
    owner_id: str | None = None
    timer_started_at: datetime | None = None
    time_remaining: int | None = None
    last_timer_update: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)
    started_at: datetime | None = None
    ended_at: datetime | None = None
    participant_count: int = 0


@dataclass(slots=True)
class Participant:
    """A person who joined a session. Score fields are a cache for fast reads."""

    id: str
    session_id: str
    name: str
    joined_at: datetime = field(default_factory=utc_now)
    completed: bool = False
    score: int = 0
    answered_count: int = 0
    avg_time: int = 0
    last_activity: datetime | None = None


@dataclass(frozen=True, slots=True)
class Answer:
    """One submission of a choice. Several may exist per (participant, question)."""

    id: str
    session_id: str
    participant_id: str
    question_id: str
    selected_answer: str
    is_correct: bool
    time_taken: int = 0
    answered_at: datetime | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.participant_id, self.question_id)

    @property
    def answered_instant(self) -> datetime:
        return self.answered_at or EPOCH


@dataclass(frozen=True, slots=True)
class ParticipantSummary:
    """Scores derived from a participant's deduplicated answers."""

    participant_id: str
    name: str
    score: int
    correct_count: int
    answered_count: int
    avg_time: int
    max_streak: int
    completed: bool = False
    time_std_dev: float = 0.0


@dataclass(frozen=True, slots=True)
class IncorrectAnswer:
    """Detail consumed by the report exporter."""

    question_id: str
    question_text: str
    correct_answer: str
    selected_answer: str


@dataclass(slots=True)
class Prize:
    id: str
    session_id: str
    name: str
    quantity: int
    value: str = ""
    description: str = ""


@dataclass(slots=True)
class ScratchSession:
    """Giveaway session; shares the monotonic status set with quiz sessions."""

    id: str
    join_code: str
    title: str
    description: str = ""
    status: SessionStatus = SessionStatus.WAITING
    owner_id: str | None = None
    total_cards: int = 0
    created_at: datetime = field(default_factory=utc_now)
    started_at: datetime | None = None
    ended_at: datetime | None = None


@dataclass(slots=True)
class ScratchParticipant:
    id: str
    session_id: str
    name: str
    email: str | None = None
    joined_at: datetime = field(default_factory=utc_now)


@dataclass(slots=True)
class ScratchCard:
    """Card assigned to exactly one participant; scratched at most once."""

    id: str
    session_id: str
    participant_id: str
    card_number: int
    prize_id: str | None = None
    scratched: bool = False
    scratched_at: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)

    @property
    def is_winner(self) -> bool:
        return self.prize_id is not None
