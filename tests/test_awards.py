import pytest

from live_quiz.core.models import ParticipantSummary
from live_quiz.core.services.awards import calculate_awards


def summary(
    pid: str, score: int, avg_time: int = 5, streak: int = 0, answered: int = 4, std_dev: float = 0.0
) -> ParticipantSummary:
    return ParticipantSummary(
        participant_id=pid,
        name=pid.title(),
        score=score,
        correct_count=0,
        answered_count=answered,
        avg_time=avg_time,
        max_streak=streak,
        time_std_dev=std_dev,
    )


def test_empty_session_has_no_awards():
    results = calculate_awards([], question_count=4)

    assert results.awards == ()
    assert results.top_performers == ()


def test_participants_without_answers_are_not_eligible():
    results = calculate_awards([summary("idle", 0, answered=0)], question_count=4)

    assert results.awards == ()


def test_single_participant_gets_no_photo_finish():
    results = calculate_awards([summary("solo", 100, streak=4)], question_count=4)

    assert results.get("photo-finish") is None
    assert results.get("perfect-score") is not None
    assert [r.participant_id for r in results.top_performers] == ["solo"]


def test_award_selection():
    summaries = [
        summary("ada", 100, avg_time=9, streak=4),
        summary("bo", 75, avg_time=2, streak=2),
        summary("cy", 92, avg_time=4, streak=4),
        summary("di", 80, avg_time=3, streak=1),
    ]

    results = calculate_awards(summaries, question_count=4)

    assert [r.participant_id for r in results.get("perfect-score").recipients] == ["ada"]
    # bo is fastest overall but below the accuracy bar
    assert results.get("speed-demon").recipients[0].participant_id == "di"
    assert {r.participant_id for r in results.get("streak-master").recipients} == {"ada", "cy"}
    assert [r.participant_id for r in results.get("knowledge-expert").recipients] == ["cy"]
    assert results.get("photo-finish").recipients[0].participant_id == "ada"
    assert [(r.rank, r.participant_id) for r in results.top_performers] == [(1, "ada"), (2, "cy"), (3, "di")]


def test_short_streaks_earn_nothing():
    results = calculate_awards([summary("a", 50, streak=2), summary("b", 10, streak=1)], question_count=10)

    assert results.get("streak-master") is None
    assert results.get("photo-finish") is None


def test_consistent_performer_has_the_steadiest_timing():
    summaries = [
        summary("ada", 100, answered=6, std_dev=4.5),
        summary("bo", 80, answered=5, std_dev=1.5),
        summary("cy", 50, answered=8, std_dev=0.0),
        summary("di", 90, answered=4, std_dev=0.5),
    ]

    award = calculate_awards(summaries, question_count=8).get("consistent-performer")

    # cy is below the accuracy bar and di has too few answers
    assert [(r.participant_id, r.value) for r in award.recipients] == [("bo", "±1.5s")]


@pytest.mark.parametrize(
    ("answered", "std_dev"),
    [(4, 0.0), (5, 10.0)],
)
def test_no_consistent_performer_without_enough_answers_or_steady_timing(answered, std_dev):
    results = calculate_awards([summary("ada", 100, answered=answered, std_dev=std_dev)], question_count=8)

    assert results.get("consistent-performer") is None
