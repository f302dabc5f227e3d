from __future__ import annotations

import pytest

from conftest import ManualClock, create_quiz
from quiz_host.core.errors import QuizUnavailableError
from quiz_host.core.quiz_manager import QuizManager
from quiz_host.core.services.quiz_runner import RunnerState
from quiz_host.core.services.record_store import InMemoryRecordStore


@pytest.fixture
def manager(store: InMemoryRecordStore, clock: ManualClock) -> QuizManager:
    return QuizManager(store, clock=clock)


def test_reload_resumes_the_same_runner(manager: QuizManager, clock: ManualClock) -> None:
    quiz = create_quiz(manager.repository, time_limit=20)
    token, session = manager.ensure_session(None)
    manager.start_attempt(quiz.quiz_code, "Ana", session)

    first = manager.runner_snapshot(session)
    clock.advance(7)
    again = manager.runner_snapshot(manager.get_session(token))

    assert again.question.id == first.question.id
    assert again.remaining_seconds == 13
    assert manager.active_runner_count() == 1


def test_snapshot_applies_expired_countdown(manager: QuizManager, clock: ManualClock) -> None:
    quiz = create_quiz(manager.repository, question_count=2, time_limit=5)
    _, session = manager.ensure_session(None)
    manager.start_attempt(quiz.id, "Ana", session)
    manager.runner_snapshot(session)

    clock.advance(6)
    snapshot = manager.runner_snapshot(session)

    assert snapshot.question_index == 1
    assert snapshot.answers_recorded == 1


def test_restarting_drops_the_previous_runner(manager: QuizManager) -> None:
    quiz = create_quiz(manager.repository)
    _, session = manager.ensure_session(None)
    manager.start_attempt(quiz.id, "Ana", session)
    manager.runner_snapshot(session)
    manager.start_attempt(quiz.id, "Ana again", session)

    assert manager.active_runner_count() == 0
    assert manager.runner_snapshot(session).state is RunnerState.PRESENTING
    assert manager.active_runner_count() == 1


def test_unavailable_runner_is_not_kept(manager: QuizManager) -> None:
    _, session = manager.ensure_session(None)
    session.attempt_id = "missing"
    with pytest.raises(QuizUnavailableError):
        manager.runner_snapshot(session)
    assert manager.active_runner_count() == 0


def test_sessions_are_keyed_by_token(manager: QuizManager) -> None:
    token, session = manager.ensure_session(None)
    assert manager.ensure_session(token) == (token, session)
    assert manager.get_session("unknown") is None
    other_token, _ = manager.ensure_session("unknown")
    assert other_token != "unknown"


def test_abandoned_runners_and_sessions_are_dropped(manager: QuizManager, clock: ManualClock) -> None:
    quiz = create_quiz(manager.repository, time_limit=30)
    for number in range(20):
        _, session = manager.ensure_session(None)
        manager.start_attempt(quiz.id, f"Student {number}", session)
        manager.runner_snapshot(session)
    assert manager.active_runner_count() == 20
    assert manager.active_session_count() == 20

    clock.advance(7 * 24 * 60 * 60)

    assert manager.active_runner_count() == 0
    assert manager.active_session_count() == 0


def test_polling_keeps_a_runner_alive(manager: QuizManager, clock: ManualClock) -> None:
    quiz = create_quiz(manager.repository)
    _, session = manager.ensure_session(None)
    manager.start_attempt(quiz.id, "Ana", session)
    manager.runner_snapshot(session)

    clock.advance(50 * 60)
    manager.runner_snapshot(session)
    clock.advance(50 * 60)

    assert manager.active_runner_count() == 1


def test_returning_after_eviction_fails_closed(manager: QuizManager, clock: ManualClock) -> None:
    quiz = create_quiz(manager.repository)
    token, session = manager.ensure_session(None)
    manager.start_attempt(quiz.id, "Ana", session)
    manager.runner_snapshot(session)

    clock.advance(2 * 60 * 60)

    with pytest.raises(QuizUnavailableError, match="Session expired"):
        manager.runner_snapshot(manager.get_session(token))
    assert session.attempt_id is None
    assert manager.active_runner_count() == 0


def test_used_sessions_outlive_the_idle_timeout(manager: QuizManager, clock: ManualClock) -> None:
    token, session = manager.ensure_session(None)
    clock.advance(23 * 60 * 60)
    assert manager.get_session(token) is session
    clock.advance(23 * 60 * 60)
    assert manager.get_session(token) is session

    clock.advance(25 * 60 * 60)

    assert manager.get_session(token) is None
    new_token, _ = manager.ensure_session(token)
    assert new_token != token
