import pytest

from live_quiz.core.models import SessionStatus
from live_quiz.core.quiz_exporter import save_quiz_to_file, serialize_quiz
from live_quiz.core.quiz_importer import QuizImportError, load_quiz_from_file, parse_quiz_text

ARITHMETIC = """TITLE: Arithmetic warm-up
DESCRIPTION: Numbers before coffee
TIMELIMIT: 120

Q: What is 2 + 2?
A: 3
B: 4
C: 5
CORRECT: B

---

Q: Which is prime?
Pick carefully.
A: 9
B: 11
CORRECT: B
POINTS: 2
"""


def test_parses_header_and_questions():
    imported = parse_quiz_text(ARITHMETIC)

    assert imported.title == "Arithmetic warm-up"
    assert imported.description == "Numbers before coffee"
    assert imported.time_limit_seconds == 120
    first, second = imported.questions
    assert (first.id, first.options, first.correct_answer) == ("q1", ("3", "4", "5"), "4")
    assert second.text == "Which is prime?\nPick carefully."
    assert second.points == 2
    assert second.order_index == 1


def test_title_defaults_to_the_file_name(tmp_path):
    path = tmp_path / "capitals.txt"
    path.write_text("Q: Capital of Norway?\nA: Oslo\nB: Bergen\nCORRECT: A\n", encoding="utf-8")

    imported = load_quiz_from_file(path)

    assert imported.title == "capitals"
    assert imported.time_limit_seconds is None
    assert imported.source_path == path


@pytest.mark.parametrize(
    "text",
    [
        "TITLE: Nothing here\n",
        "Q: Missing answer key\nA: x\nB: y\n",
        "Q: One option\nA: x\nCORRECT: A\n",
        "Q: Gap in letters\nA: x\nC: y\nCORRECT: A\n",
        "Q: Wrong key\nA: x\nB: y\nCORRECT: D\n",
        "Q: Limit inside\nA: x\nB: y\nCORRECT: A\nTIMELIMIT: 30\n",
        "TIMELIMIT: soon\n\nQ: Bad limit\nA: x\nB: y\nCORRECT: A\n",
        "AUTHOR: me\n\nQ: Unknown header\nA: x\nB: y\nCORRECT: A\n",
    ],
)
def test_malformed_files_are_rejected(text):
    with pytest.raises(QuizImportError):
        parse_quiz_text(text)


def test_export_then_import_preserves_the_quiz(manager, tmp_path):
    exported = manager.import_quiz_text(ARITHMETIC, owner_id="presenter-1")

    path = manager.export_quiz_file(exported.id, tmp_path / "out" / "arithmetic.txt")
    reimported = manager.import_quiz_file(path)

    assert reimported.title == exported.title
    assert reimported.time_limit_seconds == 120
    assert [(q.text, q.options, q.correct_answer, q.points) for q in reimported.questions] == [
        (q.text, q.options, q.correct_answer, q.points) for q in exported.questions
    ]


def test_default_time_limit_is_not_written(manager, quiz):
    session = manager.create_session(quiz.id)
    manager.update_quiz(quiz.id, quiz.title, quiz.questions, time_limit_seconds=600)

    assert "TIMELIMIT" not in serialize_quiz(manager.get_quiz(quiz.id))
    assert "TIMELIMIT: 60" in serialize_quiz(session.quiz)
    assert session.status is SessionStatus.WAITING


def test_empty_quiz_cannot_be_exported(tmp_path, quiz):
    quiz.questions = []

    with pytest.raises(ValueError):
        save_quiz_to_file(tmp_path / "empty.txt", quiz)
