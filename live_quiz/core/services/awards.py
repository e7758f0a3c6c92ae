"""End-of-session awards.

Each award is a read-only reduction over the ranked summaries and is
recomputed from current state on every call. An award that does not apply
(empty session, nobody qualifies) is simply absent from the result.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from live_quiz.constants.award_constants import (
    CONSISTENT_PERFORMER_MAX_STD_DEV,
    CONSISTENT_PERFORMER_MIN_ANSWERS,
    CONSISTENT_PERFORMER_MIN_SCORE,
    KNOWLEDGE_EXPERT_MIN_SCORE,
    SPEED_DEMON_MIN_SCORE,
    STREAK_MASTER_MIN_STREAK,
    TOP_PERFORMER_COUNT,
)
from live_quiz.core.models import ParticipantSummary
from live_quiz.core.services.scoreboard import rank_summaries


@dataclass(frozen=True, slots=True)
class AwardRecipient:
    participant_id: str
    name: str
    value: str
    rank: int | None = None


@dataclass(frozen=True, slots=True)
class Award:
    id: str
    name: str
    description: str
    recipients: tuple[AwardRecipient, ...]


@dataclass(frozen=True, slots=True)
class AwardResults:
    awards: tuple[Award, ...] = ()
    top_performers: tuple[AwardRecipient, ...] = ()

    def get(self, award_id: str) -> Award | None:
        return next((a for a in self.awards if a.id == award_id), None)


def calculate_awards(summaries: Iterable[ParticipantSummary], question_count: int) -> AwardResults:
    # Participants who never answered cannot win anything.
    ranked = [s for s in rank_summaries(summaries) if s.answered_count > 0]
    if not ranked:
        return AwardResults()

    candidates = [
        perfect_score_award(ranked),
        speed_demon_award(ranked),
        streak_master_award(ranked),
        photo_finish_award(ranked, question_count),
        consistent_performer_award(ranked),
        knowledge_expert_award(ranked),
    ]
    top = tuple(
        AwardRecipient(s.participant_id, s.name, f"{s.score}%", rank=index + 1)
        for index, s in enumerate(ranked[:TOP_PERFORMER_COUNT])
    )
    return AwardResults(awards=tuple(a for a in candidates if a is not None), top_performers=top)


def perfect_score_award(ranked: list[ParticipantSummary]) -> Award | None:
    winners = [s for s in ranked if s.score == 100]
    if not winners:
        return None
    return Award(
        id="perfect-score",
        name="Perfect Score",
        description="Answered every question correctly",
        recipients=tuple(AwardRecipient(s.participant_id, s.name, "100%") for s in winners),
    )


def speed_demon_award(ranked: list[ParticipantSummary]) -> Award | None:
    eligible = [s for s in ranked if s.score >= SPEED_DEMON_MIN_SCORE]
    if not eligible:
        return None
    fastest = min(eligible, key=lambda s: s.avg_time)
    return Award(
        id="speed-demon",
        name="Speed Demon",
        description=f"Fastest average response time with {SPEED_DEMON_MIN_SCORE}%+ accuracy",
        recipients=(AwardRecipient(fastest.participant_id, fastest.name, f"{fastest.avg_time}s avg"),),
    )


def streak_master_award(ranked: list[ParticipantSummary]) -> Award | None:
    longest = max(s.max_streak for s in ranked)
    if longest < STREAK_MASTER_MIN_STREAK:
        return None
    holders = [s for s in ranked if s.max_streak == longest]
    return Award(
        id="streak-master",
        name="Streak Master",
        description="Longest streak of consecutive correct answers",
        recipients=tuple(AwardRecipient(s.participant_id, s.name, f"{s.max_streak} streak") for s in holders),
    )


def photo_finish_award(ranked: list[ParticipantSummary], question_count: int) -> Award | None:
    """Winner who beat the runner-up by at most one question's worth of score."""
    if len(ranked) < 2 or question_count <= 0:
        return None
    winner, runner_up = ranked[0], ranked[1]
    margin = winner.score - runner_up.score
    if not 0 < margin <= 100 / question_count:
        return None
    return Award(
        id="photo-finish",
        name="Photo Finish",
        description="Won by the narrowest margin",
        recipients=(AwardRecipient(winner.participant_id, winner.name, f"Won by {margin} pts"),),
    )


def consistent_performer_award(ranked: list[ParticipantSummary]) -> Award | None:
    """Steadiest response times among accurate participants with enough answers."""
    eligible = [
        s
        for s in ranked
        if s.answered_count >= CONSISTENT_PERFORMER_MIN_ANSWERS and s.score >= CONSISTENT_PERFORMER_MIN_SCORE
    ]
    if not eligible:
        return None
    steadiest = min(eligible, key=lambda s: s.time_std_dev)
    if steadiest.time_std_dev >= CONSISTENT_PERFORMER_MAX_STD_DEV:
        return None
    return Award(
        id="consistent-performer",
        name="Consistent Performer",
        description="Most consistent response timing",
        recipients=(
            AwardRecipient(steadiest.participant_id, steadiest.name, f"±{steadiest.time_std_dev:.1f}s"),
        ),
    )


def knowledge_expert_award(ranked: list[ParticipantSummary]) -> Award | None:
    experts = [s for s in ranked if KNOWLEDGE_EXPERT_MIN_SCORE <= s.score < 100]
    if not experts:
        return None
    return Award(
        id="knowledge-expert",
        name="Knowledge Expert",
        description=f"Achieved {KNOWLEDGE_EXPERT_MIN_SCORE}%+ accuracy",
        recipients=tuple(AwardRecipient(s.participant_id, s.name, f"{s.score}%") for s in experts),
    )
