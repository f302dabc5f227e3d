"""Quiz Runner: the per-attempt question loop.

One runner drives one attempt through its questions::

    INITIALIZING -> LOADING -> PRESENTING(i) -> SUBMITTING(i)
        -> PRESENTING(i+1) | FINISHING -> FINISHED

``UNAVAILABLE`` is terminal and reachable from INITIALIZING and LOADING.
Every transition happens under the runner's lock, so answers are written
strictly in presentation order.

A failed answer write puts the runner back into PRESENTING(i) with the
original presentation time; a failed finalize leaves it in FINISHING. In
both cases answers that were already written stay written and the caller
may retry.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum, auto
import logging
import random
from threading import Lock
from typing import Callable, NoReturn

from quiz_host.core.errors import (
    QuizUnavailableError,
    QuizValidationError,
    RecordStoreError,
    RunnerStateError,
)
from quiz_host.core.models import Answer, Attempt, ParticipantSession, Question, Quiz
from quiz_host.core.services.question_timer import QuestionTimer
from quiz_host.core.services.quiz_repository import QuizRepository

logger = logging.getLogger(__name__)


class RunnerState(Enum):
    INITIALIZING = auto()
    LOADING = auto()
    PRESENTING = auto()
    SUBMITTING = auto()
    FINISHING = auto()
    FINISHED = auto()
    UNAVAILABLE = auto()


@dataclass(slots=True)
class RunnerSnapshot:
    """Read-only view of a runner handed to the HTTP layer."""

    state: RunnerState
    attempt_id: str | None
    quiz_id: str | None
    quiz_title: str | None
    question_index: int
    question_count: int
    question: Question | None
    time_limit_seconds: int | None
    remaining_seconds: int | None
    answers_recorded: int
    total_correct: int
    total_time_ms: int
    message: str | None = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class QuizRunner:
    """Presents one question at a time and records each answer."""

    def __init__(
        self,
        repository: QuizRepository,
        session: ParticipantSession,
        clock: Callable[[], datetime] = _utc_now,
        rng: random.Random | None = None,
    ) -> None:
        self._repository = repository
        self._session = session
        self._clock = clock
        self._rng = rng or random.Random()
        self._lock = Lock()

        self._state = RunnerState.INITIALIZING
        self._message: str | None = None
        self._attempt: Attempt | None = None
        self._quiz: Quiz | None = None
        self._questions: list[Question] = []
        self._index: int = 0
        self._timer: QuestionTimer | None = None
        self._answers: list[Answer] = []

    # --- Lifecycle ---

    def start(self) -> RunnerState:
        """Initialize and load; a no-op once the runner has left INITIALIZING."""
        with self._lock:
            if self._state is RunnerState.INITIALIZING:
                self._initialize()
                self._load()
            return self._state

    def select_option(self, option_id: str) -> RunnerState:
        """Answer the current question with ``option_id``.

        A selection arriving after the countdown reached zero is recorded as
        an empty selection.
        """
        with self._lock:
            self._require(RunnerState.PRESENTING)
            question = self._questions[self._index]
            if not option_id or not question.has_option(option_id):
                raise QuizValidationError("That option does not belong to the current question.")
            if self._timer is not None and self._timer.is_expired():
                logger.info(
                    "Attempt %s selected an option after the countdown ended on question %s",
                    self.attempt_id,
                    question.id,
                )
                option_id = ""
            self._submit(option_id)
            return self._state

    def check_timeout(self) -> bool:
        """Submit an empty selection if the countdown has reached zero."""
        with self._lock:
            if self._state is not RunnerState.PRESENTING or self._timer is None:
                return False
            if not self._timer.is_expired():
                return False
            logger.info("Countdown expired for attempt %s on question %d", self.attempt_id, self._index + 1)
            self._submit("")
            return True

    def finish(self) -> RunnerState:
        """Retry finalizing the attempt after a failed write."""
        with self._lock:
            self._require(RunnerState.FINISHING)
            self._finish()
            return self._state

    def abandon(self) -> None:
        """Detach an idle runner so the session's next visit fails closed."""
        with self._lock:
            if self._attempt is not None and self._session.attempt_id == self._attempt.id:
                self._session.attempt_id = None
                logger.info("Attempt %s abandoned on question %d", self._attempt.id, self._index + 1)

    # --- Read access ---

    @property
    def state(self) -> RunnerState:
        return self._state

    @property
    def attempt_id(self) -> str | None:
        return self._attempt.id if self._attempt else self._session.attempt_id

    @property
    def questions(self) -> list[Question]:
        return list(self._questions)

    @property
    def answers(self) -> list[Answer]:
        return list(self._answers)

    @property
    def current_question(self) -> Question | None:
        if self._state in (RunnerState.PRESENTING, RunnerState.SUBMITTING):
            return self._questions[self._index]
        return None

    def remaining_seconds(self) -> int | None:
        if self._state is not RunnerState.PRESENTING or self._timer is None:
            return None
        return self._timer.remaining_seconds()

    def total_correct(self) -> int:
        return sum(1 for answer in self._answers if answer.is_correct)

    def total_time_ms(self) -> int:
        return sum(answer.time_taken_ms for answer in self._answers)

    def snapshot(self) -> RunnerSnapshot:
        with self._lock:
            return RunnerSnapshot(
                state=self._state,
                attempt_id=self.attempt_id,
                quiz_id=self._quiz.id if self._quiz else None,
                quiz_title=self._quiz.title if self._quiz else None,
                question_index=self._index,
                question_count=len(self._questions),
                question=self.current_question,
                time_limit_seconds=self._quiz.time_per_question_sec if self._quiz else None,
                remaining_seconds=self.remaining_seconds(),
                answers_recorded=len(self._answers),
                total_correct=self.total_correct(),
                total_time_ms=self.total_time_ms(),
                message=self._message,
            )

    # --- Transitions ---

    def _initialize(self) -> None:
        attempt_id = self._session.attempt_id
        if not attempt_id:
            self._fail("Session expired. Please enter your name to start the quiz.")
        try:
            attempt = self._repository.get_attempt(attempt_id)
        except QuizUnavailableError as exc:
            self._fail(str(exc))
        except RecordStoreError:
            logger.exception("Could not verify attempt %s", attempt_id)
            self._fail("There was a problem accessing your quiz. Please try again.")
        if attempt.is_submitted:
            self._fail("This attempt has already been submitted.")
        self._attempt = attempt
        self._state = RunnerState.LOADING

    def _load(self) -> None:
        assert self._attempt is not None
        try:
            quiz = self._repository.get_open_quiz(self._attempt.quiz_id)
            questions = self._repository.list_questions(quiz.id)
        except QuizUnavailableError as exc:
            self._fail(str(exc))
        except RecordStoreError:
            logger.exception("Could not load quiz %s", self._attempt.quiz_id)
            self._fail("Failed to load quiz. Please try again.")
        if not questions:
            self._fail("This quiz has no questions yet.")

        if quiz.shuffle_questions:
            questions = list(questions)
            self._rng.shuffle(questions)
        if quiz.shuffle_options:
            questions = [replace(question, options=self._shuffled(question.options)) for question in questions]

        self._quiz = quiz
        self._questions = questions
        logger.info("Loaded %d question(s) of quiz %s for attempt %s", len(questions), quiz.id, self._attempt.id)
        self._present(0)

    def _present(self, index: int) -> None:
        assert self._quiz is not None
        self._index = index
        self._timer = QuestionTimer(self._quiz.time_per_question_sec, self._clock(), self._clock)
        self._state = RunnerState.PRESENTING

    def _submit(self, selected_option_id: str) -> None:
        assert self._attempt is not None and self._timer is not None
        question = self._questions[self._index]
        self._state = RunnerState.SUBMITTING
        is_correct = bool(selected_option_id) and selected_option_id == question.answer_id
        time_taken_ms = self._timer.elapsed_ms()
        try:
            answer = self._repository.record_answer(
                self._attempt.id,
                question.id,
                selected_option_id,
                is_correct,
                time_taken_ms,
            )
        except RecordStoreError:
            self._state = RunnerState.PRESENTING
            logger.error("Failed to record answer for attempt %s question %s", self._attempt.id, question.id)
            raise
        self._answers.append(answer)

        if self._index == len(self._questions) - 1:
            self._state = RunnerState.FINISHING
            self._finish()
        else:
            self._present(self._index + 1)

    def _finish(self) -> None:
        assert self._attempt is not None
        total_correct = self.total_correct()
        total_time_ms = self.total_time_ms()
        try:
            self._repository.finalize_attempt(self._attempt.id, self._clock(), total_correct, total_time_ms)
        except (RecordStoreError, QuizUnavailableError):
            logger.error("Failed to finalize attempt %s; answers were saved", self._attempt.id)
            raise
        self._session.completed_attempt_id = self._attempt.id
        self._session.attempt_id = None
        self._state = RunnerState.FINISHED
        logger.info(
            "Attempt %s finished: %d correct in %d ms",
            self._attempt.id,
            total_correct,
            total_time_ms,
        )

    # --- Helpers ---

    def _require(self, expected: RunnerState) -> None:
        if self._state is not expected:
            raise RunnerStateError(
                f"Cannot do that while the quiz is {self._state.name.lower()}."
            )

    def _fail(self, message: str) -> NoReturn:
        self._state = RunnerState.UNAVAILABLE
        self._message = message
        logger.warning("Runner unavailable for attempt %s: %s", self._session.attempt_id, message)
        raise QuizUnavailableError(message)

    def _shuffled(self, items: list) -> list:
        shuffled = list(items)
        self._rng.shuffle(shuffled)
        return shuffled
