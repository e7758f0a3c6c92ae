from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

import pytest

from live_quiz.core.models import Answer, Question, QuizSnapshot
from live_quiz.core.quiz_manager import QuizManager
from live_quiz.core.services.scratch_cards import ScratchCardService
from live_quiz.core.store import InMemoryDocumentStore

T0 = datetime(2024, 5, 1, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


def make_questions() -> list[Question]:
    return [
        Question(id="q1", text="First letter?", options=("A", "B", "C"), correct_answer="A", order_index=0),
        Question(id="q2", text="Second letter?", options=("A", "B", "C"), correct_answer="B", order_index=1),
        Question(id="q3", text="Third letter?", options=("A", "B", "C"), correct_answer="C", order_index=2),
    ]


def make_snapshot(time_limit_seconds: int = 60) -> QuizSnapshot:
    return QuizSnapshot(title="Letters", questions=tuple(make_questions()), time_limit_seconds=time_limit_seconds)


def make_answer(
    participant_id: str,
    question_id: str,
    selected: str,
    correct: bool,
    time_taken: int = 0,
    at_seconds: float | None = None,
    answer_id: str | None = None,
) -> Answer:
    return Answer(
        id=answer_id or f"{participant_id}-{question_id}-{selected}-{at_seconds}",
        session_id="s1",
        participant_id=participant_id,
        question_id=question_id,
        selected_answer=selected,
        is_correct=correct,
        time_taken=time_taken,
        answered_at=T0 + timedelta(seconds=at_seconds) if at_seconds is not None else None,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture()
def manager(store: InMemoryDocumentStore, clock: FakeClock) -> QuizManager:
    return QuizManager(store, clock=clock, rng=random.Random(7))


@pytest.fixture()
def scratch_service(store: InMemoryDocumentStore, clock: FakeClock) -> ScratchCardService:
    return ScratchCardService(store, rng=random.Random(11), clock=clock)


@pytest.fixture()
def quiz(manager: QuizManager):
    return manager.create_quiz("Letters", make_questions(), time_limit_seconds=60)


@pytest.fixture()
def session(manager: QuizManager, quiz):
    return manager.create_session(quiz.id, owner_id="presenter-1")
