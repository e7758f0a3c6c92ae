"""Leaderboard ranking over participant summaries."""

from __future__ import annotations

import statistics
from dataclasses import dataclass
from typing import Iterable

from live_quiz.core.models import ParticipantSummary
from live_quiz.core.services.scoring import round_half_up


def rank_summaries(summaries: Iterable[ParticipantSummary]) -> list[ParticipantSummary]:
    """Score descending, then average time ascending. Exact ties keep input order."""
    return sorted(summaries, key=lambda s: (-s.score, s.avg_time))


@dataclass(frozen=True, slots=True)
class ScoreboardRow:
    """Immutable snapshot returned to consumers."""

    rank: int
    participant_id: str
    display_name: str
    score: int
    correct_answers: int
    total_answers: int
    avg_time: int
    max_streak: int
    completed: bool


@dataclass(frozen=True, slots=True)
class SessionStatistics:
    participant_count: int
    completed_count: int
    completion_rate: int
    average_score: int
    median_score: int
    highest_score: int
    lowest_score: int


class Scoreboard:
    """Ranked view of a session, rebuilt from summaries every time it is read."""

    def __init__(self, summaries: Iterable[ParticipantSummary]) -> None:
        self._ranked = rank_summaries(summaries)

    def __len__(self) -> int:
        return len(self._ranked)

    def ranked_summaries(self) -> list[ParticipantSummary]:
        return list(self._ranked)

    def rows(self) -> list[ScoreboardRow]:
        return [
            ScoreboardRow(
                rank=index + 1,
                participant_id=summary.participant_id,
                display_name=summary.name,
                score=summary.score,
                correct_answers=summary.correct_count,
                total_answers=summary.answered_count,
                avg_time=summary.avg_time,
                max_streak=summary.max_streak,
                completed=summary.completed,
            )
            for index, summary in enumerate(self._ranked)
        ]

    def get_top_scorers(self, limit: int = 3) -> list[ScoreboardRow]:
        """Return the top N rows."""
        return self.rows()[: max(0, limit)]

    def position_of(self, participant_id: str) -> int | None:
        """1-based rank of a participant, or None if they are not on the board."""
        for index, summary in enumerate(self._ranked):
            if summary.participant_id == participant_id:
                return index + 1
        return None

    def statistics(self) -> SessionStatistics:
        scores = [s.score for s in self._ranked]
        total = len(scores)
        completed = sum(1 for s in self._ranked if s.completed)
        if not scores:
            return SessionStatistics(0, 0, 0, 0, 0, 0, 0)
        return SessionStatistics(
            participant_count=total,
            completed_count=completed,
            completion_rate=round_half_up(completed / total * 100),
            average_score=round_half_up(sum(scores) / total),
            median_score=round_half_up(statistics.median(scores)),
            highest_score=max(scores),
            lowest_score=min(scores),
        )
