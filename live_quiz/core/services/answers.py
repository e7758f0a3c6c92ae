"""Collapsing repeated answer writes down to one authoritative answer each.

Participants' answers are written at-least-once: a retried request or a
double tap can leave several records for the same (participant, question).
The most recent record by ``answered_at`` is the one that counts. Scoring
must always run on the output of :func:`deduplicate_answers`.
"""

from __future__ import annotations

from typing import Iterable

from live_quiz.core.models import Answer


def deduplicate_answers(answers: Iterable[Answer]) -> list[Answer]:
    """Keep the latest answer per (participant, question).

    Records with equal instants (or no instant, read as the epoch) resolve to
    the one that comes later in the input. The result lists each pair in the
    order it was first seen, so applying this twice changes nothing.
    """
    latest: dict[tuple[str, str], Answer] = {}
    for answer in answers:
        current = latest.get(answer.key)
        if current is None or answer.answered_instant >= current.answered_instant:
            latest[answer.key] = answer
    return list(latest.values())


def group_by_participant(answers: Iterable[Answer]) -> dict[str, list[Answer]]:
    grouped: dict[str, list[Answer]] = {}
    for answer in answers:
        grouped.setdefault(answer.participant_id, []).append(answer)
    return grouped
