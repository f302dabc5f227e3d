"""FastAPI server that exposes the participant pages and the admin API."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
import logging
import secrets
from typing import Iterator
from uuid import uuid4

from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, PlainTextResponse
from pydantic import BaseModel
import uvicorn

from quiz_host.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from quiz_host.constants.network_constants import (
    ADMIN_TOKEN_HEADER,
    DEFAULT_HOST,
    DEFAULT_PORT,
    SESSION_COOKIE_MAX_AGE,
    SESSION_COOKIE_NAME,
)
from quiz_host.constants.quiz_constants import DEFAULT_QUESTION_POINTS
from quiz_host.core.errors import QuizUnavailableError, RecordStoreError, RunnerStateError
from quiz_host.core.markdown_math_renderer import renderer
from quiz_host.core.models import ParticipantSession, Question, QuestionDraft, QuestionOption, Quiz, QuizDraft
from quiz_host.core.quiz_importer import QuizImportError
from quiz_host.core.quiz_manager import QuizManager
from quiz_host.core.services.leaderboard import LeaderboardState
from quiz_host.core.services.quiz_runner import RunnerSnapshot
from quiz_host.server.pages import GATE_PAGE_HTML, HOME_PAGE_HTML, LEADERBOARD_PAGE_HTML, RUNNER_PAGE_HTML

logger = logging.getLogger(__name__)


class JoinPayload(BaseModel):
    """Payload schema for the gate's name form."""

    name: str | None = None


class AnswerPayload(BaseModel):
    """Payload schema for a selected option."""

    option_id: str


class QuizPayload(BaseModel):
    title: str
    description: str | None = None
    time_per_question_sec: int | None = None
    shuffle_questions: bool = False
    shuffle_options: bool = False


class OpenPayload(BaseModel):
    is_open: bool


class OptionPayload(BaseModel):
    id: str | None = None
    text: str


class QuestionPayload(BaseModel):
    """A new question; ``correct_index`` points into ``options``."""

    text: str
    options: list[OptionPayload]
    correct_index: int
    points: int = DEFAULT_QUESTION_POINTS


@contextmanager
def _service_errors() -> Iterator[None]:
    """Translate service exceptions into HTTP errors."""
    try:
        yield
    except QuizUnavailableError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except RunnerStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except RecordStoreError as exc:
        logger.warning("Store failure during %s on %s: %s", exc.operation, exc.table, exc)
        raise HTTPException(status_code=502, detail="The quiz service is unreachable. Please try again.") from exc


def _session_token(request: Request) -> str | None:
    return request.cookies.get(SESSION_COOKIE_NAME)


def _ensure_session(request: Request, response: Response, manager: QuizManager) -> ParticipantSession:
    token, session = manager.ensure_session(_session_token(request))
    if token != _session_token(request):
        response.set_cookie(
            key=SESSION_COOKIE_NAME,
            value=token,
            max_age=SESSION_COOKIE_MAX_AGE,
            samesite="lax",
            httponly=True,
        )
    return session


def _current_session(request: Request, manager: QuizManager) -> ParticipantSession:
    # An unknown cookie behaves like an empty session; the runner then fails closed.
    return manager.get_session(_session_token(request)) or ParticipantSession()


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _quiz_payload(quiz: Quiz) -> dict[str, object]:
    return {
        "id": quiz.id,
        "title": quiz.title,
        "description": quiz.description,
        "is_open": quiz.is_open,
        "quiz_code": quiz.quiz_code,
        "scoring_strategy": quiz.scoring_strategy,
        "shuffle_questions": quiz.shuffle_questions,
        "shuffle_options": quiz.shuffle_options,
        "time_per_question_sec": quiz.time_per_question_sec,
        "created_at": _iso(quiz.created_at),
        "updated_at": _iso(quiz.updated_at),
    }


def _question_payload(question: Question) -> dict[str, object]:
    return {
        "id": question.id,
        "quiz_id": question.quiz_id,
        "text": question.text,
        "options": [{"id": option.id, "text": option.text} for option in question.options],
        "answer_id": question.answer_id,
        "points": question.points,
        "order_num": question.order_num,
    }


def _runner_payload(snapshot: RunnerSnapshot) -> dict[str, object]:
    question = snapshot.question
    question_data = None
    if question is not None:
        # The answer id never leaves the server while a question is open.
        question_data = {
            "id": question.id,
            "html": renderer.render_fragment(question.text),
            "options": [
                {"id": option.id, "html": renderer.render_inline(option.text)} for option in question.options
            ],
        }
    return {
        "state": snapshot.state.name.lower(),
        "attempt_id": snapshot.attempt_id,
        "quiz_id": snapshot.quiz_id,
        "quiz_title": snapshot.quiz_title,
        "question_index": snapshot.question_index,
        "question_count": snapshot.question_count,
        "question": question_data,
        "time_limit_seconds": snapshot.time_limit_seconds,
        "remaining_seconds": snapshot.remaining_seconds,
        "answers_recorded": snapshot.answers_recorded,
        "total_correct": snapshot.total_correct,
        "total_time_ms": snapshot.total_time_ms,
        "message": snapshot.message,
    }


def _question_draft(payload: QuestionPayload) -> QuestionDraft:
    options = [QuestionOption(id=option.id or str(uuid4()), text=option.text) for option in payload.options]
    answer_id = options[payload.correct_index].id if 0 <= payload.correct_index < len(options) else ""
    return QuestionDraft(text=payload.text, options=options, answer_id=answer_id, points=payload.points)


def _quiz_draft(payload: QuizPayload) -> QuizDraft:
    return QuizDraft(
        title=payload.title,
        description=payload.description,
        time_per_question_sec=payload.time_per_question_sec,
        shuffle_questions=payload.shuffle_questions,
        shuffle_options=payload.shuffle_options,
    )


def _get_quiz_manager_dependency(quiz_manager: QuizManager):
    def dependency() -> QuizManager:
        return quiz_manager

    return dependency


def _get_admin_guard_dependency(admin_token: str | None):
    def dependency(token: str | None = Header(default=None, alias=ADMIN_TOKEN_HEADER)) -> None:
        if admin_token and not secrets.compare_digest(token or "", admin_token):
            raise HTTPException(status_code=401, detail="A valid admin token is required.")

    return dependency


def create_api_app(quiz_manager: QuizManager, admin_token: str | None = None) -> FastAPI:
    """Create a FastAPI application wired to the provided quiz manager."""
    app = FastAPI(
        title=f"{APP_NAME} API",
        version=APP_VERSION,
        description=APP_ABOUT_TEXT,
        license_info={"name": APP_LICENSE},
    )
    quiz_manager_dep = _get_quiz_manager_dependency(quiz_manager)
    admin = [Depends(_get_admin_guard_dependency(admin_token))]

    # --- Pages ---

    @app.get("/", response_class=HTMLResponse)
    def serve_home_page() -> str:
        return HOME_PAGE_HTML

    @app.get("/q/{reference}", response_class=HTMLResponse)
    def serve_gate_page(reference: str) -> str:
        return GATE_PAGE_HTML

    @app.get("/q/{reference}/quiz", response_class=HTMLResponse)
    def serve_runner_page(reference: str) -> str:
        return RUNNER_PAGE_HTML

    @app.get("/q/{reference}/leaderboard", response_class=HTMLResponse)
    def serve_leaderboard_page(reference: str) -> str:
        return LEADERBOARD_PAGE_HTML

    # --- Gate ---

    @app.get("/api/quizzes/{reference}")
    def get_quiz_summary(reference: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        with _service_errors():
            quiz = manager.resolve_quiz(reference)
            question_count = manager.repository.count_questions(quiz.id)
        return {
            "id": quiz.id,
            "title": quiz.title,
            "description": quiz.description,
            "quiz_code": quiz.quiz_code,
            "time_per_question_sec": quiz.time_per_question_sec,
            "question_count": question_count,
        }

    @app.post("/api/quizzes/{reference}/attempts", status_code=201)
    def start_attempt(
        reference: str,
        payload: JoinPayload,
        request: Request,
        response: Response,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        with _service_errors():
            manager.check_participant_name(payload.name)
        session = _ensure_session(request, response, manager)
        with _service_errors():
            attempt = manager.start_attempt(reference, payload.name, session)
        return {
            "attempt_id": attempt.id,
            "quiz_id": attempt.quiz_id,
            "name": attempt.name,
            "started_at": _iso(attempt.started_at),
        }

    # --- Runner ---

    @app.get("/api/runner")
    def get_runner(request: Request, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        with _service_errors():
            snapshot = manager.runner_snapshot(_current_session(request, manager))
        return _runner_payload(snapshot)

    @app.post("/api/runner/answer")
    def submit_answer(
        payload: AnswerPayload,
        request: Request,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        with _service_errors():
            snapshot = manager.submit_answer(_current_session(request, manager), payload.option_id)
        return _runner_payload(snapshot)

    @app.post("/api/runner/expire")
    def expire_question(request: Request, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        with _service_errors():
            snapshot = manager.expire_question(_current_session(request, manager))
        return _runner_payload(snapshot)

    @app.post("/api/runner/finish")
    def finish_attempt(request: Request, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        with _service_errors():
            snapshot = manager.finish_attempt(_current_session(request, manager))
        return _runner_payload(snapshot)

    # --- Leaderboard ---

    @app.get("/api/quizzes/{reference}/leaderboard")
    def get_leaderboard(
        reference: str,
        request: Request,
        sort: str = "score",
        period: str = "all",
        utc_offset: int = 0,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        """``utc_offset`` is the viewer's offset from UTC in minutes; it places "today"."""
        session = manager.get_session(_session_token(request))
        you = session.completed_attempt_id if session else None
        with _service_errors():
            leaderboard = manager.load_leaderboard(reference)
            if leaderboard.state is LeaderboardState.UNAVAILABLE:
                raise QuizUnavailableError(leaderboard.message or "This quiz doesn't exist or has been deleted.")
            rows = leaderboard.rows(
                sort_by=sort,
                period=period,
                you_attempt_id=you,
                now=manager.now(),
                utc_offset_minutes=utc_offset,
            )
        insights = leaderboard.insights(rows)
        your_rank = next((row.rank for row in rows if row.is_you), None)
        return {
            "state": leaderboard.state.name.lower(),
            "quiz_id": leaderboard.quiz.id,
            "quiz_title": leaderboard.quiz.title,
            "question_count": leaderboard.question_count,
            "sort": sort,
            "period": period,
            "your_rank": your_rank,
            "rows": [
                {
                    "rank": row.rank,
                    "attempt_id": row.attempt_id,
                    "name": row.name,
                    "total_correct": row.total_correct,
                    "total_time_ms": row.total_time_ms,
                    "accuracy": row.accuracy,
                    "submitted_at": _iso(row.submitted_at),
                    "is_you": row.is_you,
                }
                for row in rows
            ],
            "insights": {
                "participant_count": insights.participant_count,
                "average_score": insights.average_score,
                "average_accuracy": insights.average_accuracy,
                "average_time_ms": insights.average_time_ms,
            },
        }

    # --- Admin ---

    @app.get("/api/admin/quizzes", dependencies=admin)
    def list_quizzes(
        search: str | None = None,
        status: str = "all",
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        with _service_errors():
            quizzes = manager.list_quizzes(search=search, status=status)
        return [_quiz_payload(quiz) for quiz in quizzes]

    @app.post("/api/admin/quizzes", status_code=201, dependencies=admin)
    def create_quiz(payload: QuizPayload, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        with _service_errors():
            quiz = manager.create_quiz(_quiz_draft(payload))
        return _quiz_payload(quiz)

    @app.get("/api/admin/quizzes/{quiz_id}", dependencies=admin)
    def get_quiz(quiz_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        with _service_errors():
            quiz = manager.get_quiz(quiz_id)
        return _quiz_payload(quiz)

    @app.patch("/api/admin/quizzes/{quiz_id}", dependencies=admin)
    def update_quiz(
        quiz_id: str,
        payload: QuizPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        with _service_errors():
            quiz = manager.update_quiz(quiz_id, _quiz_draft(payload))
        return _quiz_payload(quiz)

    @app.delete("/api/admin/quizzes/{quiz_id}", status_code=204, dependencies=admin)
    def delete_quiz(quiz_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> Response:
        with _service_errors():
            manager.delete_quiz(quiz_id)
        return Response(status_code=204)

    @app.post("/api/admin/quizzes/{quiz_id}/open", dependencies=admin)
    def set_quiz_open(
        quiz_id: str,
        payload: OpenPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        with _service_errors():
            quiz = manager.set_quiz_open(quiz_id, payload.is_open)
        return _quiz_payload(quiz)

    @app.get("/api/admin/quizzes/{quiz_id}/questions", dependencies=admin)
    def list_questions(quiz_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> list[dict[str, object]]:
        with _service_errors():
            questions = manager.list_questions(quiz_id)
        return [_question_payload(question) for question in questions]

    @app.post("/api/admin/quizzes/{quiz_id}/questions", status_code=201, dependencies=admin)
    def add_question(
        quiz_id: str,
        payload: QuestionPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        with _service_errors():
            question = manager.add_question(quiz_id, _question_draft(payload))
        return _question_payload(question)

    @app.delete("/api/admin/questions/{question_id}", status_code=204, dependencies=admin)
    def delete_question(question_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> Response:
        with _service_errors():
            manager.delete_question(question_id)
        return Response(status_code=204)

    @app.post("/api/admin/quizzes/{quiz_id}/import", status_code=201, dependencies=admin)
    async def import_questions(
        quiz_id: str,
        request: Request,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        body = await request.body()
        with _service_errors():
            try:
                text = body.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise QuizImportError("Quiz text must be UTF-8 encoded.") from exc
            questions = await run_in_threadpool(manager.import_questions, quiz_id, text)
        return [_question_payload(question) for question in questions]

    @app.get("/api/admin/quizzes/{quiz_id}/export", response_class=PlainTextResponse, dependencies=admin)
    def export_questions(quiz_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> str:
        with _service_errors():
            return manager.export_questions(quiz_id)

    @app.get("/api/admin/quizzes/{quiz_id}/analytics", dependencies=admin)
    def quiz_analytics(quiz_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        with _service_errors():
            analytics = manager.quiz_analytics(quiz_id)
        return {
            "total_attempts": analytics.total_attempts,
            "completed_attempts": analytics.completed_attempts,
            "completion_rate": analytics.completion_rate,
            "average_score": analytics.average_score,
            "average_time_ms": analytics.average_time_ms,
            "question_difficulty": [
                {"question_id": item.question_id, "text": item.text, "correct_rate": item.correct_rate}
                for item in analytics.question_difficulty
            ],
        }

    return app


def run_api_server(
    quiz_manager: QuizManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    admin_token: str | None = None,
    log_level: str = "info",
) -> None:
    """Serve the FastAPI app in the foreground until interrupted."""
    app = create_api_app(quiz_manager, admin_token=admin_token)
    config = uvicorn.Config(app=app, host=host, port=port, log_level=log_level.lower())
    server = uvicorn.Server(config)
    server.run()
