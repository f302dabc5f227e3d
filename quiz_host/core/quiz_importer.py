"""Utilities for importing quiz questions from a human-friendly text format.

Format (repeat blocks separated by blank lines or '---'):

    Q: Question text (supports markdown + LaTeX). Additional lines until the
       next marker are treated as part of the question.
    A: First option text
    B: Second option text
    C: Third option text    (options run from A onwards, at least two)
    CORRECT: A|B|C|...
    POINTS: integer         (optional, defaults to 1)

Example:

    Q: What is $2 + 2$?
    A: 3
    B: 4
    C: 5
    CORRECT: B

Architecture note:
    Plain text keeps bulk authoring close to how people already write
    quizzes (and easy to produce with other tools). Parsing stays isolated
    here so the repository and the server only ever see ``QuestionDraft``.
"""

from __future__ import annotations

from string import ascii_uppercase
from uuid import uuid4

from quiz_host.constants.quiz_constants import DEFAULT_QUESTION_POINTS, MIN_OPTIONS_PER_QUESTION
from quiz_host.core.errors import QuizValidationError
from quiz_host.core.models import QuestionDraft, QuestionOption


class QuizImportError(QuizValidationError):
    """Raised when a quiz definition cannot be parsed."""


_OPTION_LETTERS = list(ascii_uppercase)


def parse_quiz_text(text: str) -> list[QuestionDraft]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if stripped:
            current_block.append(raw_line)
        elif current_block:
            # Blank line encountered after content - finalize current block
            blocks.append("\n".join(current_block).strip())
            current_block = []
    if current_block:
        blocks.append("\n".join(current_block).strip())

    questions: list[QuestionDraft] = []
    for number, block in enumerate((block for block in blocks if block), start=1):
        try:
            questions.append(_parse_block(block))
        except QuizImportError as exc:
            raise QuizImportError(f"Question {number}: {exc}") from exc
    if not questions:
        raise QuizImportError("Quiz text did not contain any questions.")
    return questions


def _parse_block(block: str) -> QuestionDraft:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letter: str | None = None
    points = DEFAULT_QUESTION_POINTS
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("CORRECT:"):
            correct_letter = line.split(":", 1)[1].strip().upper()
            current_section = None
            continue

        if upper.startswith("POINTS:"):
            raw_value = line.split(":", 1)[1].strip()
            try:
                points = int(raw_value)
            except ValueError as exc:
                raise QuizImportError("POINTS must be an integer.") from exc
            if points <= 0:
                raise QuizImportError("POINTS must be a positive integer.")
            current_section = None
            continue

        if len(line) > 2 and line[0].upper() in _OPTION_LETTERS and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section in options:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuizImportError(f"Encountered text outside of a known section: '{line}'.")

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise QuizImportError("Question text missing (Q: ...)")

    letters = _OPTION_LETTERS[: len(options)]
    if sorted(options) != letters:
        raise QuizImportError("Options must use consecutive letters starting at A.")
    if len(letters) < MIN_OPTIONS_PER_QUESTION:
        raise QuizImportError(f"Each question needs at least {MIN_OPTIONS_PER_QUESTION} options.")

    option_list = [QuestionOption(id=str(uuid4()), text=options[letter].strip()) for letter in letters]
    if any(not option.text for option in option_list):
        raise QuizImportError("Option text cannot be empty.")

    if correct_letter is None:
        raise QuizImportError("CORRECT is required.")
    if correct_letter not in letters:
        raise QuizImportError(f"CORRECT must be one of {', '.join(letters)}.")

    return QuestionDraft(
        text=question_text,
        options=option_list,
        answer_id=option_list[letters.index(correct_letter)].id,
        points=points,
    )
