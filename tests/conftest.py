from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from quiz_host.core.models import QuestionDraft, QuestionOption, Quiz, QuizDraft
from quiz_host.core.services.quiz_repository import QuizRepository
from quiz_host.core.services.record_store import InMemoryRecordStore


class ManualClock:
    """Clock that only moves when a test says so."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def question_draft(text: str, options: list[str], correct: int, points: int = 1) -> QuestionDraft:
    option_list = [QuestionOption(id=f"{text}-opt-{index}", text=option) for index, option in enumerate(options)]
    return QuestionDraft(text=text, options=option_list, answer_id=option_list[correct].id, points=points)


def create_quiz(
    repository: QuizRepository,
    title: str = "Capitals",
    question_count: int = 3,
    time_limit: int | None = None,
    is_open: bool = True,
    shuffle_questions: bool = False,
    shuffle_options: bool = False,
) -> Quiz:
    quiz = repository.create_quiz(
        QuizDraft(
            title=title,
            time_per_question_sec=time_limit,
            shuffle_questions=shuffle_questions,
            shuffle_options=shuffle_options,
        )
    )
    drafts = [
        question_draft(f"Question {number}", ["Right", "Wrong", "Also wrong"], correct=0)
        for number in range(1, question_count + 1)
    ]
    if drafts:
        repository.add_questions(quiz.id, drafts)
    if is_open:
        quiz = repository.set_quiz_open(quiz.id, True)
    return quiz


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store(clock: ManualClock) -> InMemoryRecordStore:
    return InMemoryRecordStore(clock=clock)


@pytest.fixture
def repository(store: InMemoryRecordStore) -> QuizRepository:
    return QuizRepository(store)
