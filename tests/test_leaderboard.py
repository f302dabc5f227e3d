from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import ManualClock, create_quiz
from quiz_host.core.errors import QuizValidationError
from quiz_host.core.models import Quiz
from quiz_host.core.services.leaderboard import Leaderboard, LeaderboardState, format_duration, period_start
from quiz_host.core.services.quiz_repository import QuizRepository


def submit(repository: QuizRepository, quiz: Quiz, name: str, correct: int, time_ms: int, at: datetime) -> str:
    attempt = repository.create_attempt(quiz.id, name, f"token-{name}")
    repository.finalize_attempt(attempt.id, at, correct, time_ms)
    return attempt.id


@pytest.fixture
def quiz(repository: QuizRepository) -> Quiz:
    return create_quiz(repository, question_count=10)


def test_most_correct_then_fastest(repository: QuizRepository, quiz: Quiz, clock: ManualClock) -> None:
    submit(repository, quiz, "A", 8, 120_000, clock())
    submit(repository, quiz, "B", 8, 90_000, clock())
    submit(repository, quiz, "C", 9, 500_000, clock())

    leaderboard = Leaderboard(repository, quiz.id)
    assert leaderboard.refresh() is LeaderboardState.READY
    rows = leaderboard.rows(now=clock())

    assert [(row.rank, row.name) for row in rows] == [(1, "C"), (2, "B"), (3, "A")]
    assert [row.accuracy for row in rows] == [90, 80, 80]


def test_unsubmitted_attempts_are_ignored(repository: QuizRepository, quiz: Quiz, clock: ManualClock) -> None:
    repository.create_attempt(quiz.id, "Still going", "t")
    leaderboard = Leaderboard(repository, quiz.id)
    assert leaderboard.refresh() is LeaderboardState.EMPTY
    assert leaderboard.rows(now=clock()) == []


def test_reloading_gives_identical_rows(repository: QuizRepository, quiz: Quiz, clock: ManualClock) -> None:
    for name, correct, time_ms in [("A", 5, 30_000), ("B", 5, 30_000), ("C", 7, 45_000)]:
        submit(repository, quiz, name, correct, time_ms, clock())
    leaderboard = Leaderboard(repository, quiz.id)
    leaderboard.refresh()
    first = leaderboard.rows(now=clock())
    leaderboard.refresh()
    assert leaderboard.rows(now=clock()) == first


def test_alternate_sorts_keep_score_ranks(repository: QuizRepository, quiz: Quiz, clock: ManualClock) -> None:
    submit(repository, quiz, "Slow expert", 10, 300_000, clock())
    submit(repository, quiz, "Fast guesser", 2, 20_000, clock())
    leaderboard = Leaderboard(repository, quiz.id)
    leaderboard.refresh()

    by_time = leaderboard.rows(sort_by="time", now=clock())
    assert [(row.name, row.rank) for row in by_time] == [("Fast guesser", 2), ("Slow expert", 1)]
    by_accuracy = leaderboard.rows(sort_by="accuracy", now=clock())
    assert [row.name for row in by_accuracy] == ["Slow expert", "Fast guesser"]
    with pytest.raises(QuizValidationError):
        leaderboard.rows(sort_by="name")


def test_period_filter_applies_before_ranking(repository: QuizRepository, quiz: Quiz, clock: ManualClock) -> None:
    now = clock()
    submit(repository, quiz, "Old champion", 10, 10_000, now - timedelta(days=10))
    submit(repository, quiz, "Yesterday", 6, 10_000, now - timedelta(days=1))
    submit(repository, quiz, "This morning", 4, 10_000, now - timedelta(hours=2))
    leaderboard = Leaderboard(repository, quiz.id)
    leaderboard.refresh()

    assert [(row.rank, row.name) for row in leaderboard.rows(period="today", now=now)] == [(1, "This morning")]
    assert [row.name for row in leaderboard.rows(period="week", now=now)] == ["Yesterday", "This morning"]
    assert len(leaderboard.rows(period="month", now=now)) == 3
    assert len(leaderboard.rows(period="all", now=now)) == 3


def test_you_flag_and_insights(repository: QuizRepository, quiz: Quiz, clock: ManualClock) -> None:
    submit(repository, quiz, "A", 10, 60_000, clock())
    mine = submit(repository, quiz, "Me", 5, 30_000, clock())
    leaderboard = Leaderboard(repository, quiz.id)
    leaderboard.refresh()

    rows = leaderboard.rows(you_attempt_id=mine, now=clock())
    assert [row.is_you for row in rows] == [False, True]
    insights = leaderboard.insights(rows)
    assert insights.participant_count == 2
    assert insights.average_score == 7.5
    assert insights.average_accuracy == 75
    assert insights.average_time_ms == 45_000
    assert leaderboard.insights([]).average_score is None


def test_missing_quiz_is_unavailable(repository: QuizRepository) -> None:
    leaderboard = Leaderboard(repository, "missing")
    assert leaderboard.refresh() is LeaderboardState.UNAVAILABLE
    assert leaderboard.message


def test_accuracy_is_zero_without_questions(repository: QuizRepository, clock: ManualClock) -> None:
    empty = create_quiz(repository, question_count=0)
    submit(repository, empty, "A", 0, 1_000, clock())
    leaderboard = Leaderboard(repository, empty.id)
    leaderboard.refresh()
    assert leaderboard.rows(now=clock())[0].accuracy == 0


@pytest.mark.parametrize(("ms", "text"), [(0, "0m 0s"), (59_999, "0m 59s"), (125_000, "2m 5s")])
def test_format_duration(ms: int, text: str) -> None:
    assert format_duration(ms) == text


def test_month_period_clamps_day() -> None:
    now = datetime(2024, 3, 31, 9, 30, tzinfo=timezone.utc)
    assert period_start("month", now) == datetime(2024, 2, 29, 9, 30, tzinfo=timezone.utc)
    assert period_start("today", now) == datetime(2024, 3, 31, tzinfo=timezone.utc)
    assert period_start("all", now) is None


def test_today_starts_at_the_viewers_midnight(repository: QuizRepository, quiz: Quiz) -> None:
    now = datetime(2024, 5, 15, 1, 30, tzinfo=timezone.utc)
    submit(repository, quiz, "Evening in New York", 7, 10_000, datetime(2024, 5, 14, 22, 0, tzinfo=timezone.utc))
    submit(repository, quiz, "After UTC midnight", 5, 10_000, datetime(2024, 5, 15, 0, 30, tzinfo=timezone.utc))
    leaderboard = Leaderboard(repository, quiz.id)
    leaderboard.refresh()

    in_utc = leaderboard.rows(period="today", now=now)
    assert [row.name for row in in_utc] == ["After UTC midnight"]
    in_new_york = leaderboard.rows(period="today", now=now, utc_offset_minutes=-300)
    assert [(row.rank, row.name) for row in in_new_york] == [(1, "Evening in New York"), (2, "After UTC midnight")]
    with pytest.raises(QuizValidationError):
        leaderboard.rows(period="today", now=now, utc_offset_minutes=15 * 60)
