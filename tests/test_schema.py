from datetime import datetime, timezone

import pytest

from live_quiz.constants.session_constants import SCHEMA_VERSION
from live_quiz.core.models import Session, SessionStatus
from live_quiz.core.schema import (
    SchemaError,
    answer_from_record,
    format_instant,
    parse_instant,
    scratch_session_from_record,
    session_from_record,
    session_to_record,
)

from conftest import T0, make_snapshot

LEGACY_SESSION = {
    "id": "s1",
    "sessionCode": "ABC234",
    "status": "active",
    "trainerId": "presenter-1",
    "timerStartedAt": 1714554000000,
    "currentTimeRemaining": 42,
    "participantCount": 3,
    "quiz": {
        "quizId": "quiz-1",
        "title": "Legacy",
        "timeLimit": 90,
        "questions": [
            {"questionText": "Second?", "options": ["x", "y"], "correctAnswer": "y", "orderIndex": 1},
            {"question_text": "First?", "options": ["x", "y"], "correct_answer": "x", "orderIndex": 0},
        ],
    },
}


def test_legacy_session_fields_are_migrated():
    session = session_from_record(LEGACY_SESSION)

    assert session.join_code == "ABC234"
    assert session.status is SessionStatus.ACTIVE
    assert session.owner_id == "presenter-1"
    assert session.timer_started_at == T0
    assert session.time_remaining == 42
    assert session.participant_count == 3
    assert session.quiz.time_limit_seconds == 90
    assert [q.text for q in session.quiz.questions] == ["First?", "Second?"]
    assert session.quiz.questions[0].id == "q2"


def test_written_records_use_current_names_only():
    session = Session(id="s1", join_code="ABC234", quiz=make_snapshot(), created_at=T0, timer_started_at=T0)

    record = session_to_record(session)

    assert record["schema_version"] == SCHEMA_VERSION
    assert "sessionCode" not in record and "timerStartedAt" not in record
    assert session_from_record(record) == session


def test_unknown_status_is_a_schema_error():
    with pytest.raises(SchemaError):
        session_from_record({**LEGACY_SESSION, "status": "paused"})


def test_setup_status_of_old_giveaways_reads_as_waiting():
    session = scratch_session_from_record({"id": "g1", "sessionCode": "XYZ789", "status": "setup"})

    assert session.status is SessionStatus.WAITING


def test_answer_aliases():
    answer = answer_from_record(
        {
            "id": "a1",
            "sessionId": "s1",
            "participantId": "p1",
            "questionId": "q1",
            "selectedAnswer": "A",
            "isCorrect": True,
            "timeTaken": 7,
            "answeredAt": "2024-05-01T09:00:00Z",
        }
    )

    assert (answer.participant_id, answer.selected_answer, answer.time_taken) == ("p1", "A", 7)
    assert answer.answered_at == T0


@pytest.mark.parametrize(
    "value",
    [
        1714554000000,
        "2024-05-01T09:00:00Z",
        "2024-05-01T09:00:00",
        {"seconds": 1714554000, "nanoseconds": 0},
        datetime(2024, 5, 1, 9, 0, 0),
    ],
)
def test_instants_in_every_stored_shape(value):
    assert parse_instant(value) == T0


def test_unparseable_instants_are_rejected():
    with pytest.raises(SchemaError):
        parse_instant("yesterday")
    with pytest.raises(SchemaError):
        parse_instant(True)


def test_formatted_instants_sort_chronologically():
    earlier = format_instant(datetime(2024, 5, 1, 9, 0, 0, 5, tzinfo=timezone.utc))
    later = format_instant(datetime(2024, 5, 1, 9, 0, 1, tzinfo=timezone.utc))

    assert earlier < later
    assert format_instant(None) is None
