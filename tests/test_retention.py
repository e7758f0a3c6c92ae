from datetime import timedelta

import pytest

from live_quiz.core.schema import ANSWERS, PARTICIPANTS, SCRATCH_CARDS
from live_quiz.core.services.retention import purge_expired_sessions, retention_cutoff
from live_quiz.core.services.scratch_cards import PrizeSpec

from conftest import T0


def run_session(manager, quiz, names=("Ada",)):
    session = manager.create_session(quiz.id)
    people = [manager.join_session(session.join_code, name) for name in names]
    manager.start_session(session.id)
    for person in people:
        manager.submit_answer(session.id, person.id, "q1", "A", time_taken=1)
    manager.stop_session(session.id)
    return session


def test_only_sessions_completed_before_the_cutoff_are_removed(manager, quiz, store, clock):
    old = run_session(manager, quiz, names=("Ada", "Bo"))
    clock.advance(timedelta(days=20).total_seconds())
    recent = run_session(manager, quiz)
    waiting = manager.create_session(quiz.id)
    clock.advance(timedelta(days=10).total_seconds())

    result = manager.purge_expired()

    assert (result.sessions, result.participants, result.answers) == (1, 2, 2)
    assert not manager.session_exists(old.id)
    assert manager.session_exists(recent.id)
    assert manager.session_exists(waiting.id)
    assert store.query(PARTICIPANTS, where={"session_id": old.id}) == []
    assert store.query(ANSWERS, where={"session_id": old.id}) == []
    assert manager.get_quiz(quiz.id) is not None


def test_giveaways_are_swept_too(scratch_service, store, clock):
    giveaway = scratch_service.create_session("Friday", [PrizeSpec("Mug")])
    scratch_service.join_session(giveaway.join_code, "Ada")
    scratch_service.generate_cards(giveaway.id)
    scratch_service.end_session(giveaway.id)

    result = purge_expired_sessions(store, clock.now + timedelta(days=29))

    assert (result.scratch_sessions, result.scratch_cards, result.prizes, result.scratch_participants) == (1, 1, 1, 1)
    assert result.total == 4
    assert store.query(SCRATCH_CARDS) == []


def test_retention_must_be_at_least_a_day():
    with pytest.raises(ValueError):
        retention_cutoff(T0, 0)
    assert retention_cutoff(T0, 28) == T0 - timedelta(days=28)
