"""Utilities for exporting questions to the plain-text format used for imports."""

from __future__ import annotations

from string import ascii_uppercase

from quiz_host.constants.quiz_constants import DEFAULT_QUESTION_POINTS
from quiz_host.core.models import Question


def serialize_questions(questions: list[Question]) -> str:
    if not questions:
        raise ValueError("Cannot export an empty quiz.")
    blocks = [_serialize_question(question) for question in questions]
    return "\n\n---\n\n".join(blocks) + "\n"


def _serialize_question(question: Question) -> str:
    lines: list[str] = []

    question_lines = question.text.splitlines() or [question.text]
    lines.append(f"Q: {question_lines[0]}")
    lines.extend(question_lines[1:])

    correct_letter: str | None = None
    for letter, option in zip(ascii_uppercase, question.options):
        option_lines = option.text.splitlines() or [option.text]
        lines.append(f"{letter}: {option_lines[0]}")
        lines.extend(option_lines[1:])
        if option.id == question.answer_id:
            correct_letter = letter

    if correct_letter is not None:
        lines.append(f"CORRECT: {correct_letter}")

    if question.points != DEFAULT_QUESTION_POINTS:
        lines.append(f"POINTS: {question.points}")

    return "\n".join(lines)
