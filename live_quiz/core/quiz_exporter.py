"""Utilities for exporting quizzes to the plain-text format used for imports."""

from __future__ import annotations

from pathlib import Path

from live_quiz.constants.session_constants import DEFAULT_TIME_LIMIT_SECONDS
from live_quiz.core.models import Question, Quiz, QuizSnapshot
from live_quiz.core.quiz_importer import OPTION_LETTERS


def save_quiz_to_file(file_path: Path, quiz: Quiz | QuizSnapshot) -> Path:
    """Persist the quiz to disk in the text import format."""

    if not quiz.questions:
        raise ValueError("Cannot export an empty quiz.")

    file_path = file_path.resolve()
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(serialize_quiz(quiz), encoding="utf-8")
    return file_path


def serialize_quiz(quiz: Quiz | QuizSnapshot) -> str:
    header = [f"TITLE: {quiz.title}"]
    if quiz.description:
        header.append(f"DESCRIPTION: {' '.join(quiz.description.split())}")
    if quiz.time_limit_seconds != DEFAULT_TIME_LIMIT_SECONDS:
        header.append(f"TIMELIMIT: {quiz.time_limit_seconds}")

    ordered = sorted(quiz.questions, key=lambda q: q.order_index)
    blocks = ["\n".join(header)] + [_serialize_question(question) for question in ordered]
    return "\n\n---\n\n".join(blocks) + "\n"


def _serialize_question(question: Question) -> str:
    if len(question.options) > len(OPTION_LETTERS):
        raise ValueError(f"Questions can have at most {len(OPTION_LETTERS)} options.")

    lines: list[str] = []
    question_lines = question.text.splitlines() or [question.text]
    lines.append(f"Q: {question_lines[0]}")
    lines.extend(question_lines[1:])

    for letter, option_text in zip(OPTION_LETTERS, question.options):
        option_lines = option_text.splitlines() or [option_text]
        lines.append(f"{letter}: {option_lines[0]}")
        lines.extend(option_lines[1:])

    correct_letter = OPTION_LETTERS[question.options.index(question.correct_answer)]
    lines.append(f"CORRECT: {correct_letter}")

    if question.points != 1:
        lines.append(f"POINTS: {question.points}")

    return "\n".join(lines)
