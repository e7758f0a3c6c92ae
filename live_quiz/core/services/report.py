"""Session results: ranked rows with incorrect-answer detail, and CSV export."""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from live_quiz.core.models import Answer, IncorrectAnswer, Participant, Session
from live_quiz.core.services.answers import deduplicate_answers, group_by_participant
from live_quiz.core.services.scoreboard import Scoreboard, SessionStatistics
from live_quiz.core.services.scoring import incorrect_answers, summarize_session

CSV_HEADERS = (
    "Rank",
    "Name",
    "Joined At",
    "Completed",
    "Score %",
    "Correct",
    "Answered",
    "Avg Time (s)",
    "Best Streak",
)


@dataclass(frozen=True, slots=True)
class ReportRow:
    rank: int
    participant_id: str
    name: str
    joined_at: str
    completed: bool
    score: int
    correct_count: int
    answered_count: int
    avg_time: int
    max_streak: int
    incorrect_answers: tuple[IncorrectAnswer, ...]


@dataclass(frozen=True, slots=True)
class SessionReport:
    session_id: str
    join_code: str
    quiz_title: str
    question_count: int
    statistics: SessionStatistics
    rows: tuple[ReportRow, ...]


def build_session_report(
    session: Session,
    participants: Iterable[Participant],
    answers: Iterable[Answer],
) -> SessionReport:
    """Assemble everything a results page or PDF generator needs for one session."""
    roster = list(participants)
    latest = deduplicate_answers(answers)
    grouped = group_by_participant(latest)
    scoreboard = Scoreboard(summarize_session(roster, latest, session.quiz))
    joined = {p.id: p.joined_at for p in roster}

    rows = tuple(
        ReportRow(
            rank=row.rank,
            participant_id=row.participant_id,
            name=row.display_name,
            joined_at=joined[row.participant_id].isoformat(timespec="seconds"),
            completed=row.completed,
            score=row.score,
            correct_count=row.correct_answers,
            answered_count=row.total_answers,
            avg_time=row.avg_time,
            max_streak=row.max_streak,
            incorrect_answers=tuple(
                incorrect_answers(row.participant_id, grouped.get(row.participant_id, []), session.quiz)
            ),
        )
        for row in scoreboard.rows()
    )
    return SessionReport(
        session_id=session.id,
        join_code=session.join_code,
        quiz_title=session.quiz.title,
        question_count=session.quiz.question_count,
        statistics=scoreboard.statistics(),
        rows=rows,
    )


def render_results_csv(report: SessionReport) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for row in report.rows:
        writer.writerow(
            (
                row.rank,
                row.name,
                row.joined_at,
                "Yes" if row.completed else "No",
                f"{row.score}%",
                row.correct_count,
                row.answered_count,
                row.avg_time,
                row.max_streak,
            )
        )
    return buffer.getvalue()


def export_results_csv(file_path: Path, report: SessionReport) -> Path:
    """Write the report's rows to ``file_path`` and return the resolved path."""
    file_path = file_path.resolve()
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(render_results_csv(report), encoding="utf-8")
    return file_path
