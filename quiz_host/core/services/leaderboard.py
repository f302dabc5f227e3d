"""Service for ranking submitted attempts of a quiz."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum, auto
import logging

from quiz_host.core.errors import QuizUnavailableError, QuizValidationError, RecordStoreError
from quiz_host.core.models import Attempt, Quiz
from quiz_host.core.services.quiz_repository import QuizRepository

logger = logging.getLogger(__name__)

SORT_KEYS = ("score", "time", "accuracy")
TIME_PERIODS = ("all", "today", "week", "month")
MAX_UTC_OFFSET_MINUTES = 14 * 60


class LeaderboardState(Enum):
    LOADING = auto()
    READY = auto()
    EMPTY = auto()
    UNAVAILABLE = auto()


@dataclass(slots=True)
class LeaderboardRow:
    """Immutable snapshot returned to consumers."""

    rank: int
    attempt_id: str
    name: str
    total_correct: int
    total_time_ms: int
    accuracy: int
    submitted_at: datetime
    is_you: bool = False


@dataclass(slots=True)
class LeaderboardInsights:
    participant_count: int
    average_score: float | None
    average_accuracy: float | None
    average_time_ms: float | None


def format_duration(ms: float) -> str:
    total_seconds = int(ms // 1000)
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}m {seconds}s"


def ranking_key(attempt: Attempt) -> tuple:
    """Most correct first, then fastest; submit time and id keep ties stable."""
    submitted = attempt.submitted_at or datetime.max.replace(tzinfo=timezone.utc)
    return (-attempt.total_correct, attempt.total_time_ms, submitted, attempt.id)


def period_start(period: str, now: datetime) -> datetime | None:
    if period not in TIME_PERIODS:
        raise QuizValidationError(f"Time period must be one of {', '.join(TIME_PERIODS)}.")
    if period == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
        day = now.day
        while True:
            try:
                return now.replace(year=year, month=month, day=day)
            except ValueError:
                day -= 1
    return None


class Leaderboard:
    """Fetches submitted attempts once and derives rankings from them."""

    def __init__(self, repository: QuizRepository, quiz_id: str) -> None:
        self._repository = repository
        self._quiz_id = quiz_id
        self._state = LeaderboardState.LOADING
        self._quiz: Quiz | None = None
        self._attempts: list[Attempt] = []
        self._question_count = 0
        self._message: str | None = None

    @property
    def state(self) -> LeaderboardState:
        return self._state

    @property
    def quiz(self) -> Quiz | None:
        return self._quiz

    @property
    def question_count(self) -> int:
        return self._question_count

    @property
    def message(self) -> str | None:
        return self._message

    def refresh(self) -> LeaderboardState:
        """(Re)load the quiz, its submitted attempts and its question count.

        A missing quiz ends in UNAVAILABLE; a store failure does too but the
        ``RecordStoreError`` is re-raised so callers can report it.
        """
        self._state = LeaderboardState.LOADING
        self._message = None
        try:
            quiz = self._repository.get_quiz(self._quiz_id)
            attempts = self._repository.list_submitted_attempts(quiz.id)
            question_count = self._repository.count_questions(quiz.id)
        except QuizUnavailableError as exc:
            return self._fail(str(exc))
        except RecordStoreError:
            logger.exception("Failed to load leaderboard for quiz %s", self._quiz_id)
            self._fail("Failed to load leaderboard data.")
            raise
        self._quiz = quiz
        self._attempts = attempts
        self._question_count = question_count
        self._state = LeaderboardState.READY if attempts else LeaderboardState.EMPTY
        logger.debug("Leaderboard for quiz %s has %d attempt(s)", quiz.id, len(attempts))
        return self._state

    def rows(
        self,
        sort_by: str = "score",
        period: str = "all",
        you_attempt_id: str | None = None,
        now: datetime | None = None,
        utc_offset_minutes: int = 0,
    ) -> list[LeaderboardRow]:
        """Filter by period, rank by the scoring strategy, then order for display.

        Periods are measured from ``now`` on the viewer's wall clock, which
        sits ``utc_offset_minutes`` east of UTC.
        """
        if sort_by not in SORT_KEYS:
            raise QuizValidationError(f"Sort must be one of {', '.join(SORT_KEYS)}.")
        if abs(utc_offset_minutes) > MAX_UTC_OFFSET_MINUTES:
            raise QuizValidationError("UTC offset must be within 14 hours.")
        viewer_zone = timezone(timedelta(minutes=utc_offset_minutes))
        cutoff = period_start(period, (now or datetime.now(timezone.utc)).astimezone(viewer_zone))
        attempts = [
            attempt
            for attempt in self._attempts
            if cutoff is None or (attempt.submitted_at is not None and attempt.submitted_at >= cutoff)
        ]
        ranked = [
            LeaderboardRow(
                rank=position,
                attempt_id=attempt.id,
                name=attempt.name,
                total_correct=attempt.total_correct,
                total_time_ms=attempt.total_time_ms,
                accuracy=self._accuracy(attempt.total_correct),
                submitted_at=attempt.submitted_at,
                is_you=attempt.id == you_attempt_id,
            )
            for position, attempt in enumerate(sorted(attempts, key=ranking_key), start=1)
        ]
        if sort_by == "time":
            ranked.sort(key=lambda row: (row.total_time_ms, row.rank))
        elif sort_by == "accuracy":
            ranked.sort(key=lambda row: (-row.accuracy, row.rank))
        return ranked

    def insights(self, rows: list[LeaderboardRow]) -> LeaderboardInsights:
        if not rows:
            return LeaderboardInsights(0, None, None, None)
        count = len(rows)
        return LeaderboardInsights(
            participant_count=count,
            average_score=sum(row.total_correct for row in rows) / count,
            average_accuracy=sum(row.accuracy for row in rows) / count,
            average_time_ms=sum(row.total_time_ms for row in rows) / count,
        )

    def _accuracy(self, total_correct: int) -> int:
        if self._question_count <= 0:
            return 0
        return round(total_correct / self._question_count * 100)

    def _fail(self, message: str) -> LeaderboardState:
        self._state = LeaderboardState.UNAVAILABLE
        self._message = message
        self._attempts = []
        return self._state
