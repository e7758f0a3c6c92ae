"""Per-participant score summaries derived from deduplicated answers."""

from __future__ import annotations

import logging
import math
import statistics
from typing import Iterable, Sequence

from live_quiz.core.models import Answer, IncorrectAnswer, Participant, ParticipantSummary, QuizSnapshot
from live_quiz.core.services.answers import deduplicate_answers, group_by_participant

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for the non-negative values scoring produces."""
    return int(math.floor(value + 0.5))


def summarize_participant(
    participant_id: str,
    name: str,
    answers: Iterable[Answer],
    quiz: QuizSnapshot,
) -> ParticipantSummary:
    """Fold one participant's answers into a summary.

    The score is the share of *answered* questions that were correct, so two
    right answers out of two attempted is 100 even if the quiz has ten
    questions. Answers to questions outside the session's snapshot are ignored.
    """
    own = [a for a in deduplicate_answers(answers) if a.participant_id == participant_id]
    known = [a for a in own if quiz.question_by_id(a.question_id) is not None]
    if len(known) != len(own):
        logger.debug("Ignoring %d answer(s) to unknown questions for %s", len(own) - len(known), participant_id)

    answered_count = len(known)
    correct_count = sum(1 for a in known if a.is_correct)
    if answered_count:
        score = round_half_up(correct_count / answered_count * 100)
        avg_time = round_half_up(sum(a.time_taken for a in known) / answered_count)
        time_std_dev = statistics.pstdev(a.time_taken for a in known)
    else:
        score = 0
        avg_time = 0
        time_std_dev = 0.0

    return ParticipantSummary(
        participant_id=participant_id,
        name=name,
        score=score,
        correct_count=correct_count,
        answered_count=answered_count,
        avg_time=avg_time,
        max_streak=longest_streak(known, quiz),
        completed=quiz.question_count > 0 and answered_count >= quiz.question_count,
        time_std_dev=time_std_dev,
    )


def longest_streak(answers: Sequence[Answer], quiz: QuizSnapshot) -> int:
    """Longest run of correct answers in the order they were given."""
    order = {q.id: q.order_index for q in quiz.questions}

    def encounter_order(answer: Answer) -> tuple:
        return (answer.answered_instant, order.get(answer.question_id, 0), answer.question_id)

    best = 0
    current = 0
    for answer in sorted(answers, key=encounter_order):
        if answer.is_correct:
            current += 1
            best = max(best, current)
        else:
            current = 0
    return best


def summarize_session(
    participants: Iterable[Participant],
    answers: Iterable[Answer],
    quiz: QuizSnapshot,
) -> list[ParticipantSummary]:
    """Summaries for every participant on the roster, in roster order.

    Answers left behind by participants who are no longer on the roster do
    not produce a summary.
    """
    grouped = group_by_participant(deduplicate_answers(answers))
    return [
        summarize_participant(p.id, p.name, grouped.get(p.id, []), quiz)
        for p in participants
    ]


def incorrect_answers(participant_id: str, answers: Iterable[Answer], quiz: QuizSnapshot) -> list[IncorrectAnswer]:
    """Wrong answers in quiz order, with the question text and the right answer."""
    wrong: list[IncorrectAnswer] = []
    own = [a for a in deduplicate_answers(answers) if a.participant_id == participant_id]
    by_question = {a.question_id: a for a in own}
    for question in quiz.questions:
        answer = by_question.get(question.id)
        if answer is None or answer.is_correct:
            continue
        wrong.append(
            IncorrectAnswer(
                question_id=question.id,
                question_text=question.text,
                correct_answer=question.correct_answer,
                selected_answer=answer.selected_answer,
            )
        )
    return wrong
