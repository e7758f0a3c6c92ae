"""Utilities for importing quizzes from a human-friendly text file.

File format: an optional header, then question blocks separated by blank
lines or '---':

    TITLE: Quiz title            (optional, defaults to the file name)
    DESCRIPTION: Short blurb     (optional)
    TIMELIMIT: seconds           (optional, whole quiz)

    Q: Question text. Additional lines until the next marker are treated
       as part of the question.
    A: First option text
    B: Second option text
    ...up to F
    CORRECT: A..F
    POINTS: positive integer     (optional, defaults to 1)

Example:

    TITLE: Arithmetic warm-up
    TIMELIMIT: 120

    Q: What is 2 + 2?
    A: 3
    B: 4
    C: 5
    CORRECT: B
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from live_quiz.core.models import Question


class QuizImportError(Exception):
    """Raised when a quiz definition cannot be parsed."""


@dataclass(slots=True)
class ImportedQuiz:
    """Container for imported quiz metadata and questions."""

    source_path: Path | None
    title: str
    questions: list[Question]
    time_limit_seconds: int | None = None
    description: str = ""


OPTION_LETTERS = ("A", "B", "C", "D", "E", "F")
_HEADER_KEYS = ("TITLE", "DESCRIPTION", "TIMELIMIT")


def load_quiz_from_file(file_path: Path) -> ImportedQuiz:
    text = file_path.read_text(encoding="utf-8")
    imported = parse_quiz_text(text, default_title=file_path.stem)
    imported.source_path = file_path
    return imported


def parse_quiz_text(text: str, default_title: str = "Untitled quiz") -> ImportedQuiz:
    header_lines, body_lines = _split_header(text.splitlines())
    metadata = _parse_header(header_lines)

    questions = [
        _parse_block(block, index)
        for index, block in enumerate(_split_blocks(body_lines))
    ]
    if not questions:
        raise QuizImportError("Quiz file did not contain any questions.")

    time_limit_seconds = None
    if "TIMELIMIT" in metadata:
        time_limit_seconds = _parse_positive_int(metadata["TIMELIMIT"], "TIMELIMIT")

    return ImportedQuiz(
        source_path=None,
        title=metadata.get("TITLE") or default_title,
        questions=questions,
        time_limit_seconds=time_limit_seconds,
        description=metadata.get("DESCRIPTION", ""),
    )


def _split_header(lines: list[str]) -> tuple[list[str], list[str]]:
    for index, raw_line in enumerate(lines):
        if raw_line.strip().upper().startswith("Q:"):
            return lines[:index], lines[index:]
    return lines, []


def _parse_header(lines: list[str]) -> dict[str, str]:
    metadata: dict[str, str] = {}
    for raw_line in lines:
        line = raw_line.strip()
        if not line or line == "---":
            continue
        key, separator, value = line.partition(":")
        key = key.strip().upper()
        if key not in _HEADER_KEYS or not separator:
            raise QuizImportError(f"Encountered text outside of a known section: '{line}'.")
        metadata[key] = value.strip()
    return metadata


def _split_blocks(lines: list[str]) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in lines:
        stripped = raw_line.strip()
        if stripped == "---" or not stripped:
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        current_block.append(raw_line)
    if current_block:
        blocks.append("\n".join(current_block).strip())
    return [block for block in blocks if block]


def _parse_block(block: str, index: int) -> Question:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letter: str | None = None
    points = 1
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith("Q:"):
            if question_lines:
                raise QuizImportError("Each block may contain only one question (Q: ...).")
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("CORRECT:"):
            correct_letter = line.split(":", 1)[1].strip().upper()
            current_section = None
            continue

        if upper.startswith("POINTS:"):
            points = _parse_positive_int(line.split(":", 1)[1].strip(), "POINTS")
            current_section = None
            continue

        if upper.startswith("TIMELIMIT:"):
            raise QuizImportError("TIMELIMIT applies to the whole quiz; put it before the first question.")

        if len(line) >= 2 and line[0].upper() in OPTION_LETTERS and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section in OPTION_LETTERS:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuizImportError(f"Encountered text outside of a known section: '{line}'.")

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise QuizImportError("Question text missing (Q: ...)")

    letters = [letter for letter in OPTION_LETTERS if letter in options]
    if letters != list(OPTION_LETTERS[: len(letters)]):
        raise QuizImportError("Options must use consecutive letters starting at A.")
    if len(letters) < 2:
        raise QuizImportError("Each question must define at least two options.")
    option_list = [options[letter].strip() for letter in letters]
    if any(not opt for opt in option_list):
        raise QuizImportError("Option text cannot be empty.")

    if correct_letter is None:
        raise QuizImportError(f"Question {index + 1} is missing CORRECT: ...")
    if correct_letter not in letters:
        raise QuizImportError(f"CORRECT must be one of {', '.join(letters)}.")

    return Question(
        id=f"q{index + 1}",
        text=question_text,
        options=tuple(option_list),
        correct_answer=option_list[letters.index(correct_letter)],
        points=points,
        order_index=index,
    )


def _parse_positive_int(raw_value: str, label: str) -> int:
    if not raw_value:
        raise QuizImportError(f"{label} must include an integer value.")
    try:
        parsed_value = int(raw_value)
    except ValueError as exc:
        raise QuizImportError(f"{label} must be an integer.") from exc
    if parsed_value <= 0:
        raise QuizImportError(f"{label} must be a positive integer.")
    return parsed_value
