"""Service for reading and writing quizzes and questions in the record store."""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any
from uuid import uuid4

from quiz_host.constants.quiz_constants import (
    MAX_TIME_LIMIT_SECONDS,
    MIN_OPTIONS_PER_QUESTION,
    MIN_TIME_LIMIT_SECONDS,
    TABLE_ANSWERS,
    TABLE_ATTEMPTS,
    TABLE_QUESTIONS,
    TABLE_QUIZZES,
)
from quiz_host.core.errors import QuizUnavailableError, QuizValidationError, RecordNotFoundError
from quiz_host.core.models import Answer, Attempt, Question, QuestionDraft, QuestionOption, Quiz, QuizDraft
from quiz_host.core.records import (
    decode_answer,
    decode_attempt,
    decode_question,
    decode_quiz,
    encode_options,
    format_timestamp,
)
from quiz_host.core.services.record_store import RecordStore

logger = logging.getLogger(__name__)

QUIZ_STATUS_FILTERS = ("all", "active", "closed")


class QuizRepository:
    """Typed access to the four backend tables."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    # --- Quizzes ---

    def get_quiz(self, quiz_id: str) -> Quiz:
        try:
            return decode_quiz(self._store.select_one(TABLE_QUIZZES, eq={"id": quiz_id}))
        except RecordNotFoundError as exc:
            raise QuizUnavailableError("This quiz doesn't exist or has been deleted.") from exc

    def get_open_quiz(self, quiz_id: str) -> Quiz:
        quiz = self.get_quiz(quiz_id)
        if not quiz.is_open:
            raise QuizUnavailableError("This quiz is closed.")
        return quiz

    def get_quiz_by_code(self, quiz_code: str) -> Quiz:
        try:
            row = self._store.select_one(TABLE_QUIZZES, eq={"quiz_code": quiz_code.upper()})
        except RecordNotFoundError as exc:
            raise QuizUnavailableError("No quiz uses this code.") from exc
        return decode_quiz(row)

    def get_open_quiz_by_code(self, quiz_code: str) -> Quiz:
        quiz = self.get_quiz_by_code(quiz_code)
        if not quiz.is_open:
            raise QuizUnavailableError("This quiz is closed.")
        return quiz

    def list_quizzes(self, search: str | None = None, status: str = "all") -> list[Quiz]:
        """Return quizzes newest first, optionally filtered by text and status."""
        if status not in QUIZ_STATUS_FILTERS:
            raise QuizValidationError(f"Status filter must be one of {', '.join(QUIZ_STATUS_FILTERS)}.")
        rows = self._store.select(TABLE_QUIZZES, order=[("created_at", False)])
        quizzes = [decode_quiz(row) for row in rows]
        if search:
            needle = search.strip().lower()
            quizzes = [
                quiz
                for quiz in quizzes
                if needle in quiz.title.lower() or (quiz.description and needle in quiz.description.lower())
            ]
        if status == "active":
            quizzes = [quiz for quiz in quizzes if quiz.is_open]
        elif status == "closed":
            quizzes = [quiz for quiz in quizzes if not quiz.is_open]
        return quizzes

    def create_quiz(self, draft: QuizDraft) -> Quiz:
        """Insert a quiz in one write; the backend fills code, status and timestamps."""
        values = self._quiz_values(draft)
        quiz = decode_quiz(self._store.insert(TABLE_QUIZZES, values))
        logger.info("Created quiz %s (%s)", quiz.id, quiz.quiz_code)
        return quiz

    def update_quiz(self, quiz_id: str, draft: QuizDraft) -> Quiz:
        self.get_quiz(quiz_id)
        rows = self._store.update(TABLE_QUIZZES, self._quiz_values(draft), eq={"id": quiz_id})
        return decode_quiz(rows[0]) if rows else self.get_quiz(quiz_id)

    def set_quiz_open(self, quiz_id: str, is_open: bool) -> Quiz:
        self.get_quiz(quiz_id)
        rows = self._store.update(TABLE_QUIZZES, {"is_open": is_open}, eq={"id": quiz_id})
        logger.info("Quiz %s is now %s", quiz_id, "open" if is_open else "closed")
        return decode_quiz(rows[0]) if rows else self.get_quiz(quiz_id)

    def delete_quiz(self, quiz_id: str) -> None:
        self.get_quiz(quiz_id)
        attempt_ids = [attempt.id for attempt in self.list_attempts(quiz_id)]
        for attempt_id in attempt_ids:
            self._store.delete(TABLE_ANSWERS, eq={"attempt_id": attempt_id})
        self._store.delete(TABLE_ATTEMPTS, eq={"quiz_id": quiz_id})
        self._store.delete(TABLE_QUESTIONS, eq={"quiz_id": quiz_id})
        self._store.delete(TABLE_QUIZZES, eq={"id": quiz_id})
        logger.info("Deleted quiz %s", quiz_id)

    # --- Questions ---

    def list_questions(self, quiz_id: str) -> list[Question]:
        rows = self._store.select(TABLE_QUESTIONS, eq={"quiz_id": quiz_id}, order=[("order_num", True)])
        return [decode_question(row) for row in rows]

    def count_questions(self, quiz_id: str) -> int:
        return self._store.count(TABLE_QUESTIONS, eq={"quiz_id": quiz_id})

    def add_question(self, quiz_id: str, draft: QuestionDraft) -> Question:
        return self.add_questions(quiz_id, [draft])[0]

    def add_questions(self, quiz_id: str, drafts: list[QuestionDraft]) -> list[Question]:
        """Validate every draft first, then append them after the existing questions."""
        self.get_quiz(quiz_id)
        prepared = [self._prepare_question(draft) for draft in drafts]
        existing = self.list_questions(quiz_id)
        next_order = max((question.order_num for question in existing), default=0) + 1
        created: list[Question] = []
        for offset, draft in enumerate(prepared):
            row = self._store.insert(
                TABLE_QUESTIONS,
                {
                    "quiz_id": quiz_id,
                    "text": draft.text,
                    "options": encode_options(draft.options),
                    "answer_id": draft.answer_id,
                    "points": draft.points,
                    "order_num": next_order + offset,
                },
            )
            created.append(decode_question(row))
        logger.info("Added %d question(s) to quiz %s", len(created), quiz_id)
        return created

    def delete_question(self, question_id: str) -> None:
        removed = self._store.delete(TABLE_QUESTIONS, eq={"id": question_id})
        if not removed:
            raise QuizUnavailableError("Question not found.")

    # --- Attempts and answers ---

    def get_attempt(self, attempt_id: str) -> Attempt:
        try:
            return decode_attempt(self._store.select_one(TABLE_ATTEMPTS, eq={"id": attempt_id}))
        except RecordNotFoundError as exc:
            raise QuizUnavailableError("Your attempt could not be found. Please start again.") from exc

    def create_attempt(self, quiz_id: str, name: str, device_token: str) -> Attempt:
        row = self._store.insert(
            TABLE_ATTEMPTS,
            {"quiz_id": quiz_id, "name": name, "device_token": device_token},
        )
        return decode_attempt(row)

    def finalize_attempt(
        self,
        attempt_id: str,
        submitted_at: datetime,
        total_correct: int,
        total_time_ms: int,
    ) -> None:
        """Write the submit timestamp and both aggregates in a single update."""
        rows = self._store.update(
            TABLE_ATTEMPTS,
            {
                "submitted_at": format_timestamp(submitted_at),
                "total_correct": total_correct,
                "total_time_ms": total_time_ms,
            },
            eq={"id": attempt_id},
        )
        if not rows:
            raise QuizUnavailableError("Your attempt could not be found. Please start again.")

    def record_answer(
        self,
        attempt_id: str,
        question_id: str,
        selected_option_id: str,
        is_correct: bool,
        time_taken_ms: int,
    ) -> Answer:
        row = self._store.insert(
            TABLE_ANSWERS,
            {
                "attempt_id": attempt_id,
                "question_id": question_id,
                "selected_option_id": selected_option_id,
                "is_correct": is_correct,
                "time_taken_ms": time_taken_ms,
            },
        )
        return decode_answer(row)

    def list_attempts(self, quiz_id: str) -> list[Attempt]:
        rows = self._store.select(TABLE_ATTEMPTS, eq={"quiz_id": quiz_id})
        return [decode_attempt(row) for row in rows]

    def list_submitted_attempts(self, quiz_id: str) -> list[Attempt]:
        rows = self._store.select(
            TABLE_ATTEMPTS,
            eq={"quiz_id": quiz_id},
            not_null=("submitted_at",),
            order=[("total_correct", False), ("total_time_ms", True)],
        )
        return [decode_attempt(row) for row in rows]

    def list_answers_for_attempts(self, attempt_ids: list[str]) -> list[Answer]:
        if not attempt_ids:
            return []
        rows = self._store.select(TABLE_ANSWERS, in_={"attempt_id": attempt_ids})
        return [decode_answer(row) for row in rows]

    # --- Validation ---

    def _quiz_values(self, draft: QuizDraft) -> dict[str, Any]:
        title = draft.title.strip()
        if not title:
            raise QuizValidationError("Quiz title is required.")
        description = (draft.description or "").strip() or None
        return {
            "title": title,
            "description": description,
            "time_per_question_sec": self._normalize_time_limit(draft.time_per_question_sec),
            "shuffle_questions": bool(draft.shuffle_questions),
            "shuffle_options": bool(draft.shuffle_options),
        }

    def _prepare_question(self, draft: QuestionDraft) -> QuestionDraft:
        """Validate and normalize a question before storage."""
        cleaned_text = draft.text.strip()
        if not cleaned_text:
            raise QuizValidationError("Question text must not be empty.")
        options = self._validate_options(draft.options)
        if not any(option.id == draft.answer_id for option in options):
            raise QuizValidationError("Please select a valid answer option.")
        if draft.points < 1:
            raise QuizValidationError("Points must be a positive integer.")
        return QuestionDraft(text=cleaned_text, options=options, answer_id=draft.answer_id, points=draft.points)

    @staticmethod
    def _validate_options(options: list[QuestionOption]) -> list[QuestionOption]:
        cleaned = [
            QuestionOption(id=option.id or str(uuid4()), text=option.text.strip())
            for option in options
            if option.text.strip()
        ]
        if len(cleaned) < MIN_OPTIONS_PER_QUESTION:
            raise QuizValidationError(f"Please add at least {MIN_OPTIONS_PER_QUESTION} answer options.")
        ids = [option.id for option in cleaned]
        if len(set(ids)) != len(ids):
            raise QuizValidationError("Option ids must be unique within a question.")
        return cleaned

    @staticmethod
    def _normalize_time_limit(time_limit_seconds: int | None) -> int | None:
        if time_limit_seconds is None:
            return None
        if isinstance(time_limit_seconds, bool) or not isinstance(time_limit_seconds, int):
            raise QuizValidationError("Time limit must be provided as an integer number of seconds.")
        if not MIN_TIME_LIMIT_SECONDS <= time_limit_seconds <= MAX_TIME_LIMIT_SECONDS:
            raise QuizValidationError(
                f"Time limit must be between {MIN_TIME_LIMIT_SECONDS} and {MAX_TIME_LIMIT_SECONDS} seconds."
            )
        return time_limit_seconds

