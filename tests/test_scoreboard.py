from live_quiz.core.models import ParticipantSummary
from live_quiz.core.services.scoreboard import Scoreboard, rank_summaries


def summary(pid: str, score: int, avg_time: int, completed: bool = False, streak: int = 0) -> ParticipantSummary:
    return ParticipantSummary(
        participant_id=pid,
        name=pid.upper(),
        score=score,
        correct_count=0,
        answered_count=1,
        avg_time=avg_time,
        max_streak=streak,
        completed=completed,
    )


def test_equal_scores_rank_the_faster_participant_first():
    ranked = rank_summaries([summary("x", 80, 12), summary("y", 80, 9)])

    assert [s.participant_id for s in ranked] == ["y", "x"]


def test_ranking_order_holds_for_every_pair():
    ranked = rank_summaries(
        [summary("a", 50, 3), summary("b", 100, 20), summary("c", 50, 1), summary("d", 75, 5), summary("e", 100, 2)]
    )

    for first, second in zip(ranked, ranked[1:]):
        assert first.score > second.score or (first.score == second.score and first.avg_time <= second.avg_time)


def test_exact_ties_keep_input_order():
    ranked = rank_summaries([summary("a", 60, 4), summary("b", 60, 4)])

    assert [s.participant_id for s in ranked] == ["a", "b"]


def test_rows_and_positions():
    board = Scoreboard([summary("a", 40, 4), summary("b", 90, 9)])

    rows = board.rows()
    assert [(r.rank, r.participant_id) for r in rows] == [(1, "b"), (2, "a")]
    assert board.position_of("a") == 2
    assert board.position_of("missing") is None
    assert len(board.get_top_scorers(1)) == 1


def test_statistics():
    board = Scoreboard(
        [summary("a", 40, 4, completed=True), summary("b", 90, 9, completed=True), summary("c", 65, 3)]
    )

    stats = board.statistics()

    assert stats.participant_count == 3
    assert stats.completed_count == 2
    assert stats.completion_rate == 67
    assert stats.average_score == 65
    assert stats.median_score == 65
    assert stats.highest_score == 90
    assert stats.lowest_score == 40


def test_empty_board_statistics_are_zero():
    stats = Scoreboard([]).statistics()

    assert stats.participant_count == 0
    assert stats.average_score == 0
