import csv
import io

import pytest

from live_quiz.core.services.report import CSV_HEADERS, render_results_csv


@pytest.fixture()
def finished_session(manager, session, clock):
    clock.advance(1)
    ada = manager.join_session(session.join_code, "Ada")
    clock.advance(1)
    bo = manager.join_session(session.join_code, "Bo")
    manager.start_session(session.id)
    for question_id, answer in (("q1", "A"), ("q2", "B"), ("q3", "C")):
        clock.advance(2)
        manager.submit_answer(session.id, ada.id, question_id, answer, time_taken=2)
    clock.advance(2)
    manager.submit_answer(session.id, bo.id, "q1", "C", time_taken=9)
    manager.stop_session(session.id)
    return session, ada, bo


def test_report_rows_are_ranked_with_mistakes(manager, finished_session):
    session, ada, bo = finished_session

    report = manager.build_report(session.id)

    assert report.quiz_title == "Letters"
    assert report.question_count == 3
    assert [(r.rank, r.name, r.score) for r in report.rows] == [(1, "Ada", 100), (2, "Bo", 0)]
    assert report.rows[0].incorrect_answers == ()
    (mistake,) = report.rows[1].incorrect_answers
    assert (mistake.question_id, mistake.selected_answer, mistake.correct_answer) == ("q1", "C", "A")
    assert report.statistics.completed_count == 1


def test_csv_export(manager, finished_session, tmp_path):
    session, ada, bo = finished_session

    path = manager.export_results(session.id, tmp_path / "results" / "letters.csv")

    text = path.read_text(encoding="utf-8")
    assert text == render_results_csv(manager.build_report(session.id))
    rows = list(csv.reader(io.StringIO(text)))
    assert tuple(rows[0]) == CSV_HEADERS
    assert rows[1] == ["1", "Ada", "2024-05-01T09:00:01+00:00", "Yes", "100%", "3", "3", "2", "3"]
    assert rows[2][1] == "Bo"
    assert rows[2][3] == "No"
    assert '"Rank"' in text.splitlines()[0]
