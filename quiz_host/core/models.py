"""Domain models for the quiz host."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from quiz_host.constants.quiz_constants import DEFAULT_QUESTION_POINTS, SCORING_STRATEGY


@dataclass(slots=True)
class Quiz:
    """A quiz as stored in the record backend."""

    id: str
    title: str
    description: str | None = None
    is_open: bool = False
    scoring_strategy: str = SCORING_STRATEGY
    shuffle_questions: bool = False
    shuffle_options: bool = False
    time_per_question_sec: int | None = None
    quiz_code: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(slots=True)
class QuestionOption:
    """One answer choice; the id is opaque and stable across shuffles."""

    id: str
    text: str


@dataclass(slots=True)
class Question:
    """Multiple-choice question owned by a quiz."""

    id: str
    quiz_id: str
    text: str
    options: list[QuestionOption]
    answer_id: str
    points: int = DEFAULT_QUESTION_POINTS
    order_num: int = 0
    created_at: datetime | None = None

    def has_option(self, option_id: str) -> bool:
        return any(option.id == option_id for option in self.options)


@dataclass(slots=True)
class Attempt:
    """One participant's run through a quiz."""

    id: str
    quiz_id: str
    name: str
    device_token: str
    started_at: datetime | None = None
    submitted_at: datetime | None = None
    total_correct: int = 0
    total_time_ms: int = 0
    created_at: datetime | None = None

    @property
    def is_submitted(self) -> bool:
        return self.submitted_at is not None


@dataclass(slots=True)
class Answer:
    """A recorded answer. An empty selection means the countdown ran out."""

    id: str
    attempt_id: str
    question_id: str
    selected_option_id: str
    is_correct: bool
    time_taken_ms: int
    answered_at: datetime | None = None


@dataclass(slots=True)
class QuizDraft:
    """Fields an administrator supplies when creating or editing a quiz."""

    title: str
    description: str | None = None
    time_per_question_sec: int | None = None
    shuffle_questions: bool = False
    shuffle_options: bool = False


@dataclass(slots=True)
class QuestionDraft:
    """A question that has not been written to the backend yet."""

    text: str
    options: list[QuestionOption] = field(default_factory=list)
    answer_id: str = ""
    points: int = DEFAULT_QUESTION_POINTS


@dataclass(slots=True)
class ParticipantSession:
    """Per-browser participant state carried from the Gate to the Leaderboard."""

    attempt_id: str | None = None
    device_token: str | None = None
    name: str | None = None
    completed_attempt_id: str | None = None
