"""Service for per-quiz statistics shown to administrators."""

from __future__ import annotations

from dataclasses import dataclass, field

from quiz_host.core.services.quiz_repository import QuizRepository


@dataclass(slots=True)
class QuestionDifficulty:
    question_id: str
    text: str
    correct_rate: int


@dataclass(slots=True)
class QuizAnalytics:
    total_attempts: int = 0
    completed_attempts: int = 0
    completion_rate: int = 0
    average_score: float = 0.0
    average_time_ms: float = 0.0
    question_difficulty: list[QuestionDifficulty] = field(default_factory=list)


def compute_quiz_analytics(repository: QuizRepository, quiz_id: str) -> QuizAnalytics:
    """Summarize attempts of a quiz; questions are listed hardest first."""
    repository.get_quiz(quiz_id)
    attempts = repository.list_attempts(quiz_id)
    if not attempts:
        return QuizAnalytics()

    completed = [attempt for attempt in attempts if attempt.is_submitted]
    analytics = QuizAnalytics(
        total_attempts=len(attempts),
        completed_attempts=len(completed),
        completion_rate=round(len(completed) / len(attempts) * 100),
    )
    if not completed:
        return analytics

    analytics.average_score = sum(attempt.total_correct for attempt in completed) / len(completed)
    analytics.average_time_ms = sum(attempt.total_time_ms for attempt in completed) / len(completed)

    questions = repository.list_questions(quiz_id)
    answers = repository.list_answers_for_attempts([attempt.id for attempt in completed])
    if not questions or not answers:
        return analytics

    difficulty: list[QuestionDifficulty] = []
    for question in questions:
        question_answers = [answer for answer in answers if answer.question_id == question.id]
        correct = sum(1 for answer in question_answers if answer.is_correct)
        rate = round(correct / len(question_answers) * 100) if question_answers else 0
        difficulty.append(QuestionDifficulty(question_id=question.id, text=question.text, correct_rate=rate))
    difficulty.sort(key=lambda item: item.correct_rate)
    analytics.question_difficulty = difficulty
    return analytics
