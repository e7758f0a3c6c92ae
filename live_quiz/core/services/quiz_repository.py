"""Service for managing the library of quiz definitions."""

from __future__ import annotations

from typing import Iterable
from uuid import uuid4

from live_quiz.constants.session_constants import DEFAULT_TIME_LIMIT_SECONDS, STORE_RETRY_ATTEMPTS
from live_quiz.core import schema
from live_quiz.core.errors import QuizNotFoundError
from live_quiz.core.models import Question, Quiz, utc_now
from live_quiz.core.store import DocumentStore
from live_quiz.utils.retry import call_with_retries


class QuizRepository:
    """Validates quizzes and keeps them in the document store."""

    def __init__(self, store: DocumentStore, retry_attempts: int = STORE_RETRY_ATTEMPTS) -> None:
        self._store = store
        self._retry_attempts = retry_attempts

    def add_quiz(
        self,
        title: str,
        questions: Iterable[Question],
        time_limit_seconds: int | None = None,
        description: str = "",
        owner_id: str | None = None,
    ) -> Quiz:
        quiz = Quiz(
            id=uuid4().hex,
            title=self._validate_title(title),
            questions=self._prepare_questions(questions),
            time_limit_seconds=self._normalize_time_limit(time_limit_seconds),
            description=description.strip(),
            owner_id=owner_id,
            created_at=utc_now(),
        )
        record = schema.quiz_to_record(quiz)
        call_with_retries(
            lambda: self._store.add(schema.QUIZZES, record, record_id=quiz.id),
            description="save quiz",
            attempts=self._retry_attempts,
        )
        return quiz

    def get_quiz(self, quiz_id: str) -> Quiz:
        record = call_with_retries(
            lambda: self._store.get(schema.QUIZZES, quiz_id),
            description="load quiz",
            attempts=self._retry_attempts,
        )
        if record is None:
            raise QuizNotFoundError(f"Quiz {quiz_id} does not exist.")
        return schema.quiz_from_record(record)

    def list_quizzes(self, owner_id: str | None = None) -> list[Quiz]:
        where = {"owner_id": owner_id} if owner_id is not None else None
        records = call_with_retries(
            lambda: self._store.query(schema.QUIZZES, where=where, order_by="created_at", descending=True),
            description="list quizzes",
            attempts=self._retry_attempts,
        )
        return [schema.quiz_from_record(r) for r in records]

    def update_quiz(
        self,
        quiz_id: str,
        title: str,
        questions: Iterable[Question],
        time_limit_seconds: int | None = None,
        description: str = "",
    ) -> Quiz:
        """Replace a quiz's content. Sessions already created keep their own snapshot."""
        current = self.get_quiz(quiz_id)
        current.title = self._validate_title(title)
        current.questions = self._prepare_questions(questions)
        current.time_limit_seconds = self._normalize_time_limit(time_limit_seconds)
        current.description = description.strip()
        record = schema.quiz_to_record(current)
        call_with_retries(
            lambda: self._store.set(schema.QUIZZES, quiz_id, record),
            description="update quiz",
            attempts=self._retry_attempts,
        )
        return current

    def delete_quiz(self, quiz_id: str) -> None:
        deleted = call_with_retries(
            lambda: self._store.delete(schema.QUIZZES, quiz_id),
            description="delete quiz",
            attempts=self._retry_attempts,
        )
        if not deleted:
            raise QuizNotFoundError(f"Quiz {quiz_id} does not exist.")

    def _prepare_questions(self, questions: Iterable[Question]) -> list[Question]:
        prepared = [self._prepare_question(q, index) for index, q in enumerate(questions)]
        if not prepared:
            raise ValueError("Quiz must contain at least one question.")
        ids = [q.id for q in prepared]
        if len(set(ids)) != len(ids):
            raise ValueError("Question ids must be unique within a quiz.")
        return prepared

    def _prepare_question(self, question: Question, index: int) -> Question:
        """Validate and normalize a question before storage."""
        cleaned_text = question.text.strip()
        if not cleaned_text:
            raise ValueError("Question text must not be empty.")

        options = self._validate_options(question.options)
        correct = question.correct_answer.strip()
        if correct not in options:
            raise ValueError(f"Correct answer '{correct}' is not one of the options.")
        if question.points <= 0:
            raise ValueError("Question points must be a positive integer.")

        return Question(
            id=question.id.strip() or f"q{index + 1}",
            text=cleaned_text,
            options=options,
            correct_answer=correct,
            points=question.points,
            order_index=index,
        )

    @staticmethod
    def _validate_title(title: str) -> str:
        cleaned = title.strip()
        if not cleaned:
            raise ValueError("Quiz title must not be empty.")
        return cleaned

    @staticmethod
    def _validate_options(options: Iterable[str]) -> tuple[str, ...]:
        cleaned = tuple(option.strip() for option in options)
        if len(cleaned) < 2:
            raise ValueError("Each question must have at least two options.")
        if any(not option for option in cleaned):
            raise ValueError("Option text cannot be empty.")
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("Options must be distinct.")
        return cleaned

    @staticmethod
    def _normalize_time_limit(time_limit_seconds: int | None) -> int:
        if time_limit_seconds is None:
            return DEFAULT_TIME_LIMIT_SECONDS
        if not isinstance(time_limit_seconds, int) or isinstance(time_limit_seconds, bool):
            raise ValueError("Time limit must be provided as an integer number of seconds.")
        if time_limit_seconds <= 0:
            raise ValueError("Time limit must be a positive integer.")
        return time_limit_seconds
