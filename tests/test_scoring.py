import random

from live_quiz.core.models import Participant
from live_quiz.core.services.scoring import (
    incorrect_answers,
    longest_streak,
    round_half_up,
    summarize_participant,
    summarize_session,
)

from conftest import T0, make_answer, make_snapshot


def test_retried_answer_replaces_the_original_for_scoring():
    quiz = make_snapshot()
    answers = [
        make_answer("p1", "q1", "A", True, time_taken=5, at_seconds=10),
        make_answer("p1", "q1", "B", False, time_taken=3, at_seconds=12),
        make_answer("p1", "q2", "B", True, time_taken=8, at_seconds=20),
    ]

    summary = summarize_participant("p1", "Ada", answers, quiz)

    assert summary.answered_count == 2
    assert summary.correct_count == 1
    assert summary.score == 50
    assert summary.avg_time == 6
    assert summary.time_std_dev == 2.5
    assert summary.completed is False


def test_score_uses_answered_questions_as_denominator():
    quiz = make_snapshot()
    answers = [
        make_answer("p1", "q1", "A", True, time_taken=4, at_seconds=1),
        make_answer("p1", "q2", "B", True, time_taken=4, at_seconds=2),
    ]

    assert summarize_participant("p1", "Ada", answers, quiz).score == 100


def test_no_answers_scores_zero():
    summary = summarize_participant("p1", "Ada", [], make_snapshot())

    assert (summary.score, summary.avg_time, summary.max_streak) == (0, 0, 0)
    assert summary.time_std_dev == 0.0


def test_summary_does_not_depend_on_input_order():
    quiz = make_snapshot()
    answers = [
        make_answer("p1", "q1", "A", True, time_taken=2, at_seconds=1),
        make_answer("p1", "q2", "A", False, time_taken=7, at_seconds=2),
        make_answer("p1", "q3", "C", True, time_taken=4, at_seconds=3),
        make_answer("p1", "q2", "B", True, time_taken=5, at_seconds=4),
    ]
    expected = summarize_participant("p1", "Ada", answers, quiz)

    shuffled = list(answers)
    for seed in range(5):
        random.Random(seed).shuffle(shuffled)
        assert summarize_participant("p1", "Ada", shuffled, quiz) == expected


def test_streak_follows_answer_time_and_resets_on_mistakes():
    quiz = make_snapshot()
    answers = [
        make_answer("p1", "q3", "C", True, at_seconds=1),
        make_answer("p1", "q1", "B", False, at_seconds=2),
        make_answer("p1", "q2", "B", True, at_seconds=3),
    ]

    assert longest_streak(answers, quiz) == 1


def test_rounding_is_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(66.6666) == 67
    assert round_half_up(0.49) == 0


def test_answers_to_unknown_questions_are_ignored():
    answers = [make_answer("p1", "q1", "A", True, at_seconds=1), make_answer("p1", "ghost", "A", True, at_seconds=2)]

    assert summarize_participant("p1", "Ada", answers, make_snapshot()).answered_count == 1


def test_session_summaries_follow_roster_and_skip_removed_participants():
    quiz = make_snapshot()
    roster = [
        Participant(id="p2", session_id="s1", name="Bo", joined_at=T0),
        Participant(id="p1", session_id="s1", name="Ada", joined_at=T0),
    ]
    answers = [
        make_answer("p1", "q1", "A", True, at_seconds=1),
        make_answer("gone", "q1", "A", True, at_seconds=1),
    ]

    summaries = summarize_session(roster, answers, quiz)

    assert [s.participant_id for s in summaries] == ["p2", "p1"]
    assert summaries[0].answered_count == 0


def test_incorrect_answers_list_question_text_and_both_answers():
    quiz = make_snapshot()
    answers = [
        make_answer("p1", "q2", "C", False, at_seconds=2),
        make_answer("p1", "q1", "B", False, at_seconds=1),
        make_answer("p1", "q3", "C", True, at_seconds=3),
    ]

    wrong = incorrect_answers("p1", answers, quiz)

    assert [w.question_id for w in wrong] == ["q1", "q2"]
    assert wrong[0].question_text == "First letter?"
    assert wrong[0].correct_answer == "A"
    assert wrong[0].selected_answer == "B"
