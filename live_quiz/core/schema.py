"""Conversion between domain models and stored records.

Records written by older clients used several spellings for the same field
(``questionText`` and ``question_text``, ``sessionCode`` and ``session_code``,
millisecond ``timerStartedAt`` numbers next to ISO timestamps). They are
migrated here, once, when a record is read; every record this module writes
carries ``schema_version`` and uses only the current field names.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from live_quiz.constants.session_constants import SCHEMA_VERSION
from live_quiz.core.models import (
    EPOCH,
    Answer,
    Participant,
    Prize,
    Question,
    Quiz,
    QuizSnapshot,
    ScratchCard,
    ScratchParticipant,
    ScratchSession,
    Session,
    SessionStatus,
)

SESSIONS = "sessions"
PARTICIPANTS = "participants"
ANSWERS = "answers"
QUIZZES = "quizzes"
SCRATCH_SESSIONS = "scratch_sessions"
SCRATCH_PARTICIPANTS = "scratch_participants"
PRIZES = "prizes"
SCRATCH_CARDS = "scratch_cards"


class SchemaError(ValueError):
    """Raised when a stored record cannot be mapped onto the current schema."""


_MISSING = object()


def _pick(data: Mapping[str, Any], *names: str, default: Any = _MISSING) -> Any:
    for name in names:
        if name in data and data[name] is not None:
            return data[name]
    if default is _MISSING:
        raise SchemaError(f"Record is missing required field '{names[0]}'.")
    return default


def parse_instant(value: Any) -> datetime | None:
    """Accept ISO strings, epoch milliseconds, timestamp dicts or datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, bool):
        raise SchemaError(f"Cannot interpret {value!r} as an instant.")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, Mapping) and "seconds" in value:
        seconds = float(value["seconds"]) + float(value.get("nanoseconds", 0)) / 1e9
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise SchemaError(f"Cannot interpret {value!r} as an instant.") from exc
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    raise SchemaError(f"Cannot interpret {value!r} as an instant.")


def format_instant(value: datetime | None) -> str | None:
    # Fixed-width UTC strings keep lexical order equal to chronological order.
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


# --- Questions and quizzes ---


def question_from_record(data: Mapping[str, Any], fallback_index: int = 0) -> Question:
    options = _pick(data, "options", default=[])
    if isinstance(options, str):
        options = [options]
    correct = _pick(data, "correct_answer", "correctAnswer", "correct")
    return Question(
        id=str(_pick(data, "id", default=f"q{fallback_index + 1}")),
        text=str(_pick(data, "text", "question_text", "questionText", "question")),
        options=tuple(str(option) for option in options),
        correct_answer=str(correct),
        points=int(_pick(data, "points", default=1)),
        order_index=int(_pick(data, "order_index", "orderIndex", default=fallback_index)),
    )


def question_to_record(question: Question) -> dict[str, Any]:
    return {
        "id": question.id,
        "text": question.text,
        "options": list(question.options),
        "correct_answer": question.correct_answer,
        "points": question.points,
        "order_index": question.order_index,
    }


def snapshot_from_record(data: Mapping[str, Any]) -> QuizSnapshot:
    raw_questions = _pick(data, "questions", default=[])
    questions = [question_from_record(q, index) for index, q in enumerate(raw_questions)]
    questions.sort(key=lambda q: q.order_index)
    return QuizSnapshot(
        title=str(_pick(data, "title", default="Untitled quiz")),
        questions=tuple(questions),
        time_limit_seconds=int(_pick(data, "time_limit_seconds", "timeLimit", "time_limit")),
        description=str(_pick(data, "description", default="")),
        quiz_id=_pick(data, "quiz_id", "quizId", "id", default=None),
    )


def snapshot_to_record(snapshot: QuizSnapshot) -> dict[str, Any]:
    return {
        "quiz_id": snapshot.quiz_id,
        "title": snapshot.title,
        "description": snapshot.description,
        "time_limit_seconds": snapshot.time_limit_seconds,
        "questions": [question_to_record(q) for q in snapshot.questions],
    }


def quiz_from_record(data: Mapping[str, Any]) -> Quiz:
    snapshot = snapshot_from_record(data)
    return Quiz(
        id=str(_pick(data, "id")),
        title=snapshot.title,
        questions=list(snapshot.questions),
        time_limit_seconds=snapshot.time_limit_seconds,
        description=snapshot.description,
        owner_id=_pick(data, "owner_id", "trainer_id", "trainerId", default=None),
        created_at=parse_instant(_pick(data, "created_at", "createdAt", default=None)) or EPOCH,
    )


def quiz_to_record(quiz: Quiz) -> dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "id": quiz.id,
        "title": quiz.title,
        "description": quiz.description,
        "time_limit_seconds": quiz.time_limit_seconds,
        "owner_id": quiz.owner_id,
        "created_at": format_instant(quiz.created_at),
        "questions": [question_to_record(q) for q in quiz.questions],
    }


# --- Sessions ---


def session_from_record(data: Mapping[str, Any]) -> Session:
    raw_status = str(_pick(data, "status", default=SessionStatus.WAITING.value))
    try:
        status = SessionStatus(raw_status)
    except ValueError as exc:
        raise SchemaError(f"Unknown session status '{raw_status}'.") from exc
    remaining = _pick(data, "time_remaining", "currentTimeRemaining", default=None)
    return Session(
        id=str(_pick(data, "id")),
        join_code=str(_pick(data, "join_code", "sessionCode", "session_code")),
        quiz=snapshot_from_record(_pick(data, "quiz")),
        status=status,
        owner_id=_pick(data, "owner_id", "trainerId", "trainer_id", default=None),
        timer_started_at=parse_instant(_pick(data, "timer_started_at", "timerStartedAt", default=None)),
        time_remaining=int(remaining) if remaining is not None else None,
        last_timer_update=parse_instant(_pick(data, "last_timer_update", "lastTimerUpdate", default=None)),
        created_at=parse_instant(_pick(data, "created_at", "createdAt", default=None)) or EPOCH,
        started_at=parse_instant(_pick(data, "started_at", "startedAt", default=None)),
        ended_at=parse_instant(_pick(data, "ended_at", "endedAt", default=None)),
        participant_count=int(_pick(data, "participant_count", "participantCount", default=0)),
    )


def session_to_record(session: Session) -> dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "id": session.id,
        "join_code": session.join_code,
        "status": session.status.value,
        "quiz": snapshot_to_record(session.quiz),
        "owner_id": session.owner_id,
        "timer_started_at": format_instant(session.timer_started_at),
        "time_remaining": session.time_remaining,
        "last_timer_update": format_instant(session.last_timer_update),
        "created_at": format_instant(session.created_at),
        "started_at": format_instant(session.started_at),
        "ended_at": format_instant(session.ended_at),
        "participant_count": session.participant_count,
    }


# --- Participants and answers ---


def participant_from_record(data: Mapping[str, Any]) -> Participant:
    return Participant(
        id=str(_pick(data, "id")),
        session_id=str(_pick(data, "session_id", "sessionId")),
        name=str(_pick(data, "name", "display_name", default="Anonymous")),
        joined_at=parse_instant(_pick(data, "joined_at", "joinedAt", default=None)) or EPOCH,
        completed=bool(_pick(data, "completed", default=False)),
        score=int(_pick(data, "score", default=0)),
        answered_count=int(_pick(data, "answered_count", "totalAnswers", default=0)),
        avg_time=int(_pick(data, "avg_time", "avgTime", default=0)),
        last_activity=parse_instant(_pick(data, "last_activity", "lastActivity", default=None)),
    )


def participant_to_record(participant: Participant) -> dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "id": participant.id,
        "session_id": participant.session_id,
        "name": participant.name,
        "joined_at": format_instant(participant.joined_at),
        "completed": participant.completed,
        "score": participant.score,
        "answered_count": participant.answered_count,
        "avg_time": participant.avg_time,
        "last_activity": format_instant(participant.last_activity),
    }


def answer_from_record(data: Mapping[str, Any]) -> Answer:
    return Answer(
        id=str(_pick(data, "id")),
        session_id=str(_pick(data, "session_id", "sessionId")),
        participant_id=str(_pick(data, "participant_id", "participantId")),
        question_id=str(_pick(data, "question_id", "questionId")),
        selected_answer=str(_pick(data, "selected_answer", "selectedAnswer", "answer", default="")),
        is_correct=bool(_pick(data, "is_correct", "isCorrect", default=False)),
        time_taken=int(_pick(data, "time_taken", "timeTaken", default=0)),
        answered_at=parse_instant(_pick(data, "answered_at", "answeredAt", default=None)),
    )


def answer_to_record(answer: Answer) -> dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "id": answer.id,
        "session_id": answer.session_id,
        "participant_id": answer.participant_id,
        "question_id": answer.question_id,
        "selected_answer": answer.selected_answer,
        "is_correct": answer.is_correct,
        "time_taken": answer.time_taken,
        "answered_at": format_instant(answer.answered_at),
    }


# --- Scratch cards ---


def scratch_session_from_record(data: Mapping[str, Any]) -> ScratchSession:
    raw_status = str(_pick(data, "status", default=SessionStatus.WAITING.value))
    # The first giveaway schema had a separate 'setup' state before 'waiting'.
    if raw_status == "setup":
        raw_status = SessionStatus.WAITING.value
    return ScratchSession(
        id=str(_pick(data, "id")),
        join_code=str(_pick(data, "join_code", "sessionCode", "session_code")),
        title=str(_pick(data, "title", default="Giveaway")),
        description=str(_pick(data, "description", default="")),
        status=SessionStatus(raw_status),
        owner_id=_pick(data, "owner_id", "trainerId", default=None),
        total_cards=int(_pick(data, "total_cards", "totalCards", default=0)),
        created_at=parse_instant(_pick(data, "created_at", "createdAt", default=None)) or EPOCH,
        started_at=parse_instant(_pick(data, "started_at", "startedAt", default=None)),
        ended_at=parse_instant(_pick(data, "ended_at", "endedAt", default=None)),
    )


def scratch_session_to_record(session: ScratchSession) -> dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "id": session.id,
        "join_code": session.join_code,
        "title": session.title,
        "description": session.description,
        "status": session.status.value,
        "owner_id": session.owner_id,
        "total_cards": session.total_cards,
        "created_at": format_instant(session.created_at),
        "started_at": format_instant(session.started_at),
        "ended_at": format_instant(session.ended_at),
    }


def prize_from_record(data: Mapping[str, Any]) -> Prize:
    return Prize(
        id=str(_pick(data, "id")),
        session_id=str(_pick(data, "session_id", "sessionId")),
        name=str(_pick(data, "name", "prize_name")),
        quantity=int(_pick(data, "quantity", default=1)),
        value=str(_pick(data, "value", "prize_value", default="")),
        description=str(_pick(data, "description", "prize_description", default="")),
    )


def prize_to_record(prize: Prize) -> dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "id": prize.id,
        "session_id": prize.session_id,
        "name": prize.name,
        "quantity": prize.quantity,
        "value": prize.value,
        "description": prize.description,
    }


def scratch_participant_from_record(data: Mapping[str, Any]) -> ScratchParticipant:
    return ScratchParticipant(
        id=str(_pick(data, "id")),
        session_id=str(_pick(data, "session_id", "sessionId")),
        name=str(_pick(data, "name")),
        email=_pick(data, "email", default=None),
        joined_at=parse_instant(_pick(data, "joined_at", "joinedAt", default=None)) or EPOCH,
    )


def scratch_participant_to_record(participant: ScratchParticipant) -> dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "id": participant.id,
        "session_id": participant.session_id,
        "name": participant.name,
        "email": participant.email,
        "joined_at": format_instant(participant.joined_at),
    }


def scratch_card_from_record(data: Mapping[str, Any]) -> ScratchCard:
    return ScratchCard(
        id=str(_pick(data, "id")),
        session_id=str(_pick(data, "session_id", "sessionId")),
        participant_id=str(_pick(data, "participant_id", "participantId")),
        card_number=int(_pick(data, "card_number", "cardNumber")),
        prize_id=_pick(data, "prize_id", "prizeId", default=None),
        scratched=bool(_pick(data, "scratched", "is_scratched", default=False)),
        scratched_at=parse_instant(_pick(data, "scratched_at", "scratchedAt", default=None)),
        created_at=parse_instant(_pick(data, "created_at", "createdAt", default=None)) or EPOCH,
    )


def scratch_card_to_record(card: ScratchCard) -> dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "id": card.id,
        "session_id": card.session_id,
        "participant_id": card.participant_id,
        "card_number": card.card_number,
        "prize_id": card.prize_id,
        "scratched": card.scratched,
        "scratched_at": format_instant(card.scratched_at),
        "created_at": format_instant(card.created_at),
    }
