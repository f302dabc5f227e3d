from __future__ import annotations

import pytest

from conftest import ManualClock, create_quiz
from quiz_host.core.errors import QuizUnavailableError
from quiz_host.core.services.quiz_analytics import compute_quiz_analytics
from quiz_host.core.services.quiz_repository import QuizRepository


def test_analytics_for_quiz_without_attempts(repository: QuizRepository) -> None:
    quiz = create_quiz(repository)
    analytics = compute_quiz_analytics(repository, quiz.id)
    assert analytics.total_attempts == 0
    assert analytics.completion_rate == 0
    assert analytics.question_difficulty == []


def test_analytics_summarizes_completed_attempts(repository: QuizRepository, clock: ManualClock) -> None:
    quiz = create_quiz(repository, question_count=2)
    easy, hard = repository.list_questions(quiz.id)

    for name, hard_correct, time_ms in [("A", True, 10_000), ("B", False, 20_000)]:
        attempt = repository.create_attempt(quiz.id, name, "t")
        repository.record_answer(attempt.id, easy.id, easy.answer_id, True, time_ms // 2)
        repository.record_answer(attempt.id, hard.id, hard.answer_id if hard_correct else "", hard_correct, time_ms // 2)
        repository.finalize_attempt(attempt.id, clock(), 1 + int(hard_correct), time_ms)
    abandoned = repository.create_attempt(quiz.id, "C", "t")
    repository.record_answer(abandoned.id, hard.id, "", False, 1_000)

    analytics = compute_quiz_analytics(repository, quiz.id)

    assert analytics.total_attempts == 3
    assert analytics.completed_attempts == 2
    assert analytics.completion_rate == 67
    assert analytics.average_score == 1.5
    assert analytics.average_time_ms == 15_000
    assert [(item.question_id, item.correct_rate) for item in analytics.question_difficulty] == [
        (hard.id, 50),
        (easy.id, 100),
    ]


def test_analytics_for_missing_quiz(repository: QuizRepository) -> None:
    with pytest.raises(QuizUnavailableError):
        compute_quiz_analytics(repository, "missing")
