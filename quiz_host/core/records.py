"""Decode backend rows into domain models.

Rows come back from the record store as plain dictionaries. Every row is
decoded here exactly once so the rest of the code only sees typed models.
Question options may arrive either as a JSON array or as JSON-encoded text;
both shapes are normalised to ``list[QuestionOption]``.
"""

from __future__ import annotations

from datetime import datetime, timezone
import json
from typing import Any, Mapping

from quiz_host.constants.quiz_constants import (
    DEFAULT_QUESTION_POINTS,
    SCORING_STRATEGY,
    TABLE_ANSWERS,
    TABLE_ATTEMPTS,
    TABLE_QUESTIONS,
    TABLE_QUIZZES,
)
from quiz_host.core.errors import RecordDecodeError
from quiz_host.core.models import Answer, Attempt, Question, QuestionOption, Quiz

Row = Mapping[str, Any]


def parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            raise RecordDecodeError(f"Invalid timestamp: {value!r}") from exc
    else:
        raise RecordDecodeError(f"Invalid timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def decode_options(raw: Any) -> list[QuestionOption]:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise RecordDecodeError("Question options are not valid JSON.", table=TABLE_QUESTIONS) from exc
    if not isinstance(raw, list):
        raise RecordDecodeError("Question options must be a list.", table=TABLE_QUESTIONS)
    options: list[QuestionOption] = []
    for item in raw:
        if not isinstance(item, Mapping) or "id" not in item:
            raise RecordDecodeError("Each option needs an id and a text.", table=TABLE_QUESTIONS)
        options.append(QuestionOption(id=str(item["id"]), text=str(item.get("text", ""))))
    return options


def encode_options(options: list[QuestionOption]) -> list[dict[str, str]]:
    return [{"id": option.id, "text": option.text} for option in options]


def _required(row: Row, key: str, table: str) -> Any:
    if key not in row or row[key] is None:
        raise RecordDecodeError(f"Record is missing '{key}'.", table=table)
    return row[key]


def decode_quiz(row: Row) -> Quiz:
    time_limit = row.get("time_per_question_sec")
    return Quiz(
        id=str(_required(row, "id", TABLE_QUIZZES)),
        title=str(_required(row, "title", TABLE_QUIZZES)),
        description=row.get("description"),
        is_open=bool(row.get("is_open", False)),
        scoring_strategy=row.get("scoring_strategy") or SCORING_STRATEGY,
        shuffle_questions=bool(row.get("shuffle_questions", False)),
        shuffle_options=bool(row.get("shuffle_options", False)),
        time_per_question_sec=int(time_limit) if time_limit else None,
        quiz_code=row.get("quiz_code") or "",
        created_at=parse_timestamp(row.get("created_at")),
        updated_at=parse_timestamp(row.get("updated_at")),
    )


def decode_question(row: Row) -> Question:
    return Question(
        id=str(_required(row, "id", TABLE_QUESTIONS)),
        quiz_id=str(_required(row, "quiz_id", TABLE_QUESTIONS)),
        text=str(_required(row, "text", TABLE_QUESTIONS)),
        options=decode_options(_required(row, "options", TABLE_QUESTIONS)),
        answer_id=str(row.get("answer_id") or ""),
        points=int(row.get("points") or DEFAULT_QUESTION_POINTS),
        order_num=int(row.get("order_num") or 0),
        created_at=parse_timestamp(row.get("created_at")),
    )


def decode_attempt(row: Row) -> Attempt:
    return Attempt(
        id=str(_required(row, "id", TABLE_ATTEMPTS)),
        quiz_id=str(_required(row, "quiz_id", TABLE_ATTEMPTS)),
        name=str(row.get("name") or ""),
        device_token=str(row.get("device_token") or ""),
        started_at=parse_timestamp(row.get("started_at")),
        submitted_at=parse_timestamp(row.get("submitted_at")),
        total_correct=int(row.get("total_correct") or 0),
        total_time_ms=int(row.get("total_time_ms") or 0),
        created_at=parse_timestamp(row.get("created_at")),
    )


def decode_answer(row: Row) -> Answer:
    return Answer(
        id=str(_required(row, "id", TABLE_ANSWERS)),
        attempt_id=str(_required(row, "attempt_id", TABLE_ANSWERS)),
        question_id=str(_required(row, "question_id", TABLE_ANSWERS)),
        selected_option_id=str(row.get("selected_option_id") or ""),
        is_correct=bool(row.get("is_correct", False)),
        time_taken_ms=int(row.get("time_taken_ms") or 0),
        answered_at=parse_timestamp(row.get("answered_at")),
    )
