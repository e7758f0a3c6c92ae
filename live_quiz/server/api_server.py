"""FastAPI server that exposes presenter and participant endpoints."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from threading import Thread
from typing import AsyncIterator

from fastapi import Depends, FastAPI, HTTPException, Response
from pydantic import BaseModel, Field
import uvicorn

from live_quiz.constants.about import APP_NAME, APP_VERSION
from live_quiz.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from live_quiz.constants.session_constants import RETENTION_DAYS, TIMER_TICK_SECONDS
from live_quiz.core.errors import (
    InvalidSessionStateError,
    JoinCodeExhaustedError,
    LiveQuizError,
    ParticipantNotFoundError,
    QuizNotFoundError,
    ScratchCardNotFoundError,
    SessionNotFoundError,
    StoreError,
    StoreUnavailableError,
)
from live_quiz.core.models import (
    Participant,
    Question,
    Quiz,
    ScratchCard,
    Session,
    SessionStatus,
)
from live_quiz.core.quiz_importer import QuizImportError
from live_quiz.core.quiz_manager import QuizManager
from live_quiz.core.schema import format_instant
from live_quiz.core.services.awards import Award, AwardRecipient
from live_quiz.core.services.report import render_results_csv
from live_quiz.core.services.scratch_cards import PrizeSpec, ScratchCardService
from live_quiz.core.services.timer_authority import TimerRegistry

logger = logging.getLogger(__name__)

_NOT_FOUND_ERRORS = (
    SessionNotFoundError,
    QuizNotFoundError,
    ParticipantNotFoundError,
    ScratchCardNotFoundError,
)
_UNAVAILABLE_ERRORS = (JoinCodeExhaustedError, StoreUnavailableError, StoreError)


class QuestionPayload(BaseModel):
    """Payload schema for one multiple-choice question."""

    id: str = ""
    text: str
    options: list[str]
    correct_answer: str
    points: int = 1


class QuizPayload(BaseModel):
    """Payload schema for creating a quiz."""

    title: str
    description: str = ""
    time_limit_seconds: int | None = None
    owner_id: str | None = None
    questions: list[QuestionPayload]


class QuizTextPayload(BaseModel):
    """Payload schema for importing a quiz in the plain-text format."""

    content: str
    owner_id: str | None = None


class SessionPayload(BaseModel):
    quiz_id: str
    owner_id: str | None = None


class JoinPayload(BaseModel):
    """Payload schema for the join flow."""

    display_name: str
    email: str | None = None


class AnswerPayload(BaseModel):
    """Payload schema for submitted answers."""

    participant_id: str
    question_id: str
    selected_answer: str
    time_taken: int = Field(default=0, ge=0)


class PrizePayload(BaseModel):
    name: str
    quantity: int = 1
    value: str = ""
    description: str = ""


class ScratchSessionPayload(BaseModel):
    title: str
    description: str = ""
    owner_id: str | None = None
    prizes: list[PrizePayload] = []


class PurgePayload(BaseModel):
    retention_days: int = Field(default=RETENTION_DAYS, ge=1)


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, _NOT_FOUND_ERRORS):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, InvalidSessionStateError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, _UNAVAILABLE_ERRORS):
        logger.warning("Request failed: %s", exc)
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=422, detail=str(exc))


def _question_to_dict(question: Question, reveal_answer: bool) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": question.id,
        "text": question.text,
        "options": list(question.options),
        "points": question.points,
        "order_index": question.order_index,
    }
    if reveal_answer:
        payload["correct_answer"] = question.correct_answer
    return payload


def _quiz_to_dict(quiz: Quiz) -> dict[str, object]:
    return {
        "id": quiz.id,
        "title": quiz.title,
        "description": quiz.description,
        "time_limit_seconds": quiz.time_limit_seconds,
        "owner_id": quiz.owner_id,
        "created_at": format_instant(quiz.created_at),
        "questions": [_question_to_dict(q, reveal_answer=True) for q in quiz.questions],
    }


def _session_to_dict(session: Session) -> dict[str, object]:
    # Correct answers stay hidden until the session is over.
    reveal = session.status is SessionStatus.COMPLETED
    return {
        "id": session.id,
        "join_code": session.join_code,
        "status": session.status.value,
        "owner_id": session.owner_id,
        "time_remaining": session.time_remaining,
        "last_timer_update": format_instant(session.last_timer_update),
        "timer_started_at": format_instant(session.timer_started_at),
        "created_at": format_instant(session.created_at),
        "started_at": format_instant(session.started_at),
        "ended_at": format_instant(session.ended_at),
        "participant_count": session.participant_count,
        "quiz": {
            "quiz_id": session.quiz.quiz_id,
            "title": session.quiz.title,
            "description": session.quiz.description,
            "time_limit_seconds": session.quiz.time_limit_seconds,
            "questions": [_question_to_dict(q, reveal_answer=reveal) for q in session.quiz.questions],
        },
    }


def _participant_to_dict(participant: Participant) -> dict[str, object]:
    return {
        "id": participant.id,
        "session_id": participant.session_id,
        "name": participant.name,
        "joined_at": format_instant(participant.joined_at),
        "completed": participant.completed,
        "score": participant.score,
        "answered_count": participant.answered_count,
        "avg_time": participant.avg_time,
    }


def _recipient_to_dict(recipient: AwardRecipient) -> dict[str, object]:
    return {
        "participant_id": recipient.participant_id,
        "name": recipient.name,
        "value": recipient.value,
        "rank": recipient.rank,
    }


def _award_to_dict(award: Award) -> dict[str, object]:
    return {
        "id": award.id,
        "name": award.name,
        "description": award.description,
        "recipients": [_recipient_to_dict(r) for r in award.recipients],
    }


def _card_to_dict(card: ScratchCard) -> dict[str, object]:
    return {
        "id": card.id,
        "session_id": card.session_id,
        "participant_id": card.participant_id,
        "card_number": card.card_number,
        # The prize stays secret until the card is scratched.
        "prize_id": card.prize_id if card.scratched else None,
        "is_winner": card.is_winner if card.scratched else None,
        "scratched": card.scratched,
        "scratched_at": format_instant(card.scratched_at),
    }


def _get_quiz_manager_dependency(quiz_manager: QuizManager):
    def dependency() -> QuizManager:
        return quiz_manager

    return dependency


def _get_scratch_service_dependency(scratch_service: ScratchCardService):
    def dependency() -> ScratchCardService:
        return scratch_service

    return dependency


def create_api_app(
    quiz_manager: QuizManager,
    scratch_service: ScratchCardService | None = None,
    run_timers: bool = False,
    tick_seconds: float = TIMER_TICK_SECONDS,
) -> FastAPI:
    """Create a FastAPI application wired to the provided services.

    With ``run_timers`` the server acts as timer authority for every session
    it starts; otherwise a presenter client drives the countdown through
    ``POST /sessions/{id}/tick``.
    """
    timers = TimerRegistry(quiz_manager, tick_seconds=tick_seconds)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        timers.stop_all()

    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION, lifespan=lifespan)
    app.state.timers = timers
    quiz_manager_dep = _get_quiz_manager_dependency(quiz_manager)
    scratch_dep = _get_scratch_service_dependency(scratch_service or ScratchCardService(quiz_manager.store))

    @app.get("/health")
    def health() -> dict[str, object]:
        return {"status": "ok", "version": APP_VERSION}

    # --- Quizzes ---

    @app.post("/quizzes", status_code=201)
    def create_quiz(payload: QuizPayload, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        questions = [
            Question(
                id=q.id,
                text=q.text,
                options=tuple(q.options),
                correct_answer=q.correct_answer,
                points=q.points,
                order_index=index,
            )
            for index, q in enumerate(payload.questions)
        ]
        try:
            quiz = manager.create_quiz(
                payload.title,
                questions,
                payload.time_limit_seconds,
                payload.description,
                payload.owner_id,
            )
        except (LiveQuizError, ValueError) as exc:
            raise _http_error(exc) from exc
        return _quiz_to_dict(quiz)

    @app.post("/quizzes/import", status_code=201)
    def import_quiz(payload: QuizTextPayload, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        try:
            quiz = manager.import_quiz_text(payload.content, payload.owner_id)
        except QuizImportError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except (LiveQuizError, ValueError) as exc:
            raise _http_error(exc) from exc
        return _quiz_to_dict(quiz)

    @app.get("/quizzes")
    def list_quizzes(
        owner_id: str | None = None,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        try:
            return [_quiz_to_dict(q) for q in manager.list_quizzes(owner_id)]
        except LiveQuizError as exc:
            raise _http_error(exc) from exc

    @app.get("/quizzes/{quiz_id}")
    def get_quiz(quiz_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        try:
            return _quiz_to_dict(manager.get_quiz(quiz_id))
        except LiveQuizError as exc:
            raise _http_error(exc) from exc

    # --- Sessions ---

    @app.post("/sessions", status_code=201)
    def create_session(payload: SessionPayload, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        try:
            session = manager.create_session(payload.quiz_id, owner_id=payload.owner_id)
        except LiveQuizError as exc:
            raise _http_error(exc) from exc
        return _session_to_dict(session)

    @app.get("/sessions/{session_id}")
    def get_session(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        try:
            return _session_to_dict(manager.get_session(session_id))
        except LiveQuizError as exc:
            raise _http_error(exc) from exc

    @app.get("/sessions/code/{join_code}")
    def find_session(join_code: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        try:
            return _session_to_dict(manager.find_session_by_code(join_code))
        except LiveQuizError as exc:
            raise _http_error(exc) from exc

    @app.post("/sessions/{session_id}/start")
    def start_session(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        try:
            session = manager.start_session(session_id)
        except LiveQuizError as exc:
            raise _http_error(exc) from exc
        if run_timers:
            timers.start(session_id)
        return _session_to_dict(session)

    @app.post("/sessions/{session_id}/stop")
    def stop_session(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        try:
            session = manager.stop_session(session_id)
        except LiveQuizError as exc:
            raise _http_error(exc) from exc
        timers.stop(session_id)
        return _session_to_dict(session)

    @app.post("/sessions/{session_id}/cancel")
    def cancel_session(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        try:
            return _session_to_dict(manager.cancel_session(session_id))
        except LiveQuizError as exc:
            raise _http_error(exc) from exc

    @app.post("/sessions/{session_id}/tick")
    def tick_session(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        try:
            session = manager.get_session(session_id)
            if session.status is not SessionStatus.ACTIVE:
                return {"time_remaining": session.time_remaining or 0, "status": session.status.value}
            remaining = timers.authority(session_id).tick()
            session = manager.get_session(session_id)
        except LiveQuizError as exc:
            raise _http_error(exc) from exc
        if session.status is not SessionStatus.ACTIVE:
            timers.discard(session_id)
        return {"time_remaining": remaining, "status": session.status.value}

    # --- Participants ---

    @app.post("/sessions/code/{join_code}/join", status_code=201)
    def join_session(
        join_code: str,
        payload: JoinPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        try:
            participant = manager.join_session(join_code, payload.display_name)
        except (LiveQuizError, ValueError) as exc:
            raise _http_error(exc) from exc
        return _participant_to_dict(participant)

    @app.get("/sessions/{session_id}/participants")
    def list_participants(
        session_id: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        try:
            return [_participant_to_dict(p) for p in manager.get_participants(session_id)]
        except LiveQuizError as exc:
            raise _http_error(exc) from exc

    @app.get("/sessions/{session_id}/participants/{participant_id}")
    def get_participant(
        session_id: str,
        participant_id: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        try:
            return _participant_to_dict(manager.get_participant(session_id, participant_id))
        except LiveQuizError as exc:
            raise _http_error(exc) from exc

    @app.delete("/sessions/{session_id}/participants/{participant_id}", status_code=204)
    def kick_participant(
        session_id: str,
        participant_id: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> Response:
        try:
            manager.kick_participant(session_id, participant_id)
        except LiveQuizError as exc:
            raise _http_error(exc) from exc
        return Response(status_code=204)

    @app.post("/sessions/{session_id}/answers", status_code=201)
    def submit_answer(
        session_id: str,
        payload: AnswerPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        try:
            answer = manager.submit_answer(
                session_id,
                payload.participant_id,
                payload.question_id,
                payload.selected_answer,
                time_taken=payload.time_taken,
            )
        except (LiveQuizError, ValueError) as exc:
            raise _http_error(exc) from exc
        return {
            "id": answer.id,
            "question_id": answer.question_id,
            "answered_at": format_instant(answer.answered_at),
        }

    # --- Results ---

    @app.get("/sessions/{session_id}/leaderboard")
    def get_leaderboard(
        session_id: str,
        limit: int | None = None,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        try:
            board = manager.get_leaderboard(session_id)
        except LiveQuizError as exc:
            raise _http_error(exc) from exc
        rows = board.rows() if limit is None else board.get_top_scorers(limit)
        return [
            {
                "rank": row.rank,
                "participant_id": row.participant_id,
                "name": row.display_name,
                "score": row.score,
                "correct_answers": row.correct_answers,
                "total_answers": row.total_answers,
                "avg_time": row.avg_time,
                "max_streak": row.max_streak,
                "completed": row.completed,
            }
            for row in rows
        ]

    @app.get("/sessions/{session_id}/awards")
    def get_awards(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        try:
            results = manager.get_awards(session_id)
        except LiveQuizError as exc:
            raise _http_error(exc) from exc
        return {
            "awards": [_award_to_dict(a) for a in results.awards],
            "top_performers": [_recipient_to_dict(r) for r in results.top_performers],
        }

    @app.get("/sessions/{session_id}/report")
    def get_report(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        try:
            report = manager.build_report(session_id)
        except LiveQuizError as exc:
            raise _http_error(exc) from exc
        stats = report.statistics
        return {
            "session_id": report.session_id,
            "join_code": report.join_code,
            "quiz_title": report.quiz_title,
            "question_count": report.question_count,
            "statistics": {
                "participant_count": stats.participant_count,
                "completed_count": stats.completed_count,
                "completion_rate": stats.completion_rate,
                "average_score": stats.average_score,
                "median_score": stats.median_score,
                "highest_score": stats.highest_score,
                "lowest_score": stats.lowest_score,
            },
            "participants": [
                {
                    "rank": row.rank,
                    "participant_id": row.participant_id,
                    "name": row.name,
                    "score": row.score,
                    "correct_count": row.correct_count,
                    "answered_count": row.answered_count,
                    "avg_time": row.avg_time,
                    "max_streak": row.max_streak,
                    "completed": row.completed,
                    "incorrect_answers": [
                        {
                            "question_id": wrong.question_id,
                            "question_text": wrong.question_text,
                            "correct_answer": wrong.correct_answer,
                            "selected_answer": wrong.selected_answer,
                        }
                        for wrong in row.incorrect_answers
                    ],
                }
                for row in report.rows
            ],
        }

    @app.get("/sessions/{session_id}/report.csv")
    def get_report_csv(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> Response:
        try:
            report = manager.build_report(session_id)
        except LiveQuizError as exc:
            raise _http_error(exc) from exc
        filename = f"results-{report.join_code}.csv"
        return Response(
            content=render_results_csv(report),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.post("/maintenance/purge")
    def purge_sessions(payload: PurgePayload, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        try:
            result = manager.purge_expired(retention_days=payload.retention_days)
        except LiveQuizError as exc:
            raise _http_error(exc) from exc
        return {
            "sessions": result.sessions,
            "participants": result.participants,
            "answers": result.answers,
            "scratch_sessions": result.scratch_sessions,
        }

    # --- Scratch cards ---

    @app.post("/scratch", status_code=201)
    def create_scratch_session(
        payload: ScratchSessionPayload,
        service: ScratchCardService = Depends(scratch_dep),
    ) -> dict[str, object]:
        prizes = [PrizeSpec(p.name, p.quantity, p.value, p.description) for p in payload.prizes]
        try:
            session = service.create_session(payload.title, prizes, payload.description, payload.owner_id)
        except (LiveQuizError, ValueError) as exc:
            raise _http_error(exc) from exc
        return {
            "id": session.id,
            "join_code": session.join_code,
            "title": session.title,
            "status": session.status.value,
        }

    @app.post("/scratch/code/{join_code}/join", status_code=201)
    def join_scratch_session(
        join_code: str,
        payload: JoinPayload,
        service: ScratchCardService = Depends(scratch_dep),
    ) -> dict[str, object]:
        try:
            participant = service.join_session(join_code, payload.display_name, payload.email)
        except (LiveQuizError, ValueError) as exc:
            raise _http_error(exc) from exc
        return {
            "id": participant.id,
            "session_id": participant.session_id,
            "name": participant.name,
            "joined_at": format_instant(participant.joined_at),
        }

    @app.post("/scratch/{session_id}/generate")
    def generate_cards(session_id: str, service: ScratchCardService = Depends(scratch_dep)) -> dict[str, object]:
        try:
            cards = service.generate_cards(session_id)
        except (LiveQuizError, ValueError) as exc:
            raise _http_error(exc) from exc
        return {"session_id": session_id, "total_cards": len(cards)}

    @app.get("/scratch/{session_id}/participants/{participant_id}/card")
    def get_participant_card(
        session_id: str,
        participant_id: str,
        service: ScratchCardService = Depends(scratch_dep),
    ) -> dict[str, object]:
        try:
            return _card_to_dict(service.card_for_participant(session_id, participant_id))
        except LiveQuizError as exc:
            raise _http_error(exc) from exc

    @app.post("/scratch/cards/{card_id}/scratch")
    def scratch_card(card_id: str, service: ScratchCardService = Depends(scratch_dep)) -> dict[str, object]:
        try:
            return _card_to_dict(service.scratch(card_id))
        except LiveQuizError as exc:
            raise _http_error(exc) from exc

    @app.post("/scratch/{session_id}/end")
    def end_scratch_session(session_id: str, service: ScratchCardService = Depends(scratch_dep)) -> dict[str, object]:
        try:
            session = service.end_session(session_id)
        except LiveQuizError as exc:
            raise _http_error(exc) from exc
        return {"id": session.id, "status": session.status.value, "ended_at": format_instant(session.ended_at)}

    @app.get("/scratch/{session_id}/results")
    def get_scratch_results(session_id: str, service: ScratchCardService = Depends(scratch_dep)) -> dict[str, object]:
        try:
            results = service.get_results(session_id)
        except LiveQuizError as exc:
            raise _http_error(exc) from exc
        return {
            "session_id": results.session.id,
            "status": results.session.status.value,
            "total_cards": len(results.cards),
            "total_prize_units": results.total_prize_units,
            "scratched_count": results.scratched_count,
            "winners": [
                {
                    "participant_id": w.participant_id,
                    "participant_name": w.participant_name,
                    "prize_name": w.prize_name,
                    "prize_value": w.prize_value,
                    "card_number": w.card_number,
                    "scratched_at": format_instant(w.scratched_at),
                }
                for w in results.winners
            ],
        }

    return app


def start_api_server(
    quiz_manager: QuizManager,
    scratch_service: ScratchCardService | None = None,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    run_timers: bool = True,
    tick_seconds: float = TIMER_TICK_SECONDS,
    log_level: str = "info",
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(quiz_manager, scratch_service, run_timers=run_timers, tick_seconds=tick_seconds)
    config = uvicorn.Config(app=app, host=host, port=port, log_level=log_level.lower())
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="LiveQuizApiServer", daemon=True)
    thread.start()
    return thread
