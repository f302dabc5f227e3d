from __future__ import annotations

import pytest

from conftest import create_quiz
from quiz_host.core.quiz_exporter import serialize_questions
from quiz_host.core.quiz_importer import QuizImportError, parse_quiz_text
from quiz_host.core.services.quiz_repository import QuizRepository

SAMPLE = """
Q: What is $2 + 2$?
A: 3
B: 4
C: 5
CORRECT: b

---
Q: Which river flows
through Vienna?
A: Danube
B: Rhine
CORRECT: A
POINTS: 2
"""


def test_parse_blocks_into_drafts() -> None:
    first, second = parse_quiz_text(SAMPLE)

    assert first.text == "What is $2 + 2$?"
    assert [option.text for option in first.options] == ["3", "4", "5"]
    assert first.answer_id == first.options[1].id
    assert first.points == 1
    assert second.text == "Which river flows\nthrough Vienna?"
    assert second.answer_id == second.options[0].id
    assert second.points == 2
    assert len({option.id for option in first.options + second.options}) == 5


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("", "did not contain any questions"),
        ("Q: Lonely\nA: Only\nCORRECT: A", "at least 2 options"),
        ("Q: Gap\nA: One\nC: Three\nCORRECT: A", "consecutive letters"),
        ("Q: Missing\nA: One\nB: Two", "CORRECT is required"),
        ("Q: Bad\nA: One\nB: Two\nCORRECT: D", "CORRECT must be one of"),
        ("Q: Bad points\nA: One\nB: Two\nCORRECT: A\nPOINTS: zero", "POINTS must be an integer"),
    ],
)
def test_parse_errors_name_the_problem(text: str, message: str) -> None:
    with pytest.raises(QuizImportError) as excinfo:
        parse_quiz_text(text)
    assert message in str(excinfo.value)


def test_errors_name_the_question_number() -> None:
    text = "Q: Fine\nA: One\nB: Two\nCORRECT: A\n\nQ: Broken\nA: One\nB: Two"
    with pytest.raises(QuizImportError, match="Question 2"):
        parse_quiz_text(text)


def test_exported_text_imports_back(repository: QuizRepository) -> None:
    quiz = create_quiz(repository, question_count=0)
    repository.add_questions(quiz.id, parse_quiz_text(SAMPLE))

    exported = serialize_questions(repository.list_questions(quiz.id))

    assert "CORRECT: B" in exported
    assert "POINTS: 2" in exported
    reparsed = parse_quiz_text(exported)
    assert [draft.text for draft in reparsed] == ["What is $2 + 2$?", "Which river flows\nthrough Vienna?"]
    assert [draft.points for draft in reparsed] == [1, 2]


def test_export_of_empty_quiz_is_rejected() -> None:
    with pytest.raises(ValueError):
        serialize_questions([])
