"""Business logic shared by the participant pages and the admin API."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
import random
from threading import Lock
from typing import Callable

from quiz_host.constants.network_constants import RUNNER_IDLE_TIMEOUT_SECONDS
from quiz_host.core.errors import QuizUnavailableError
from quiz_host.core.identifiers import parse_quiz_reference
from quiz_host.core.models import Attempt, ParticipantSession, Question, QuestionDraft, Quiz, QuizDraft
from quiz_host.core.quiz_exporter import serialize_questions
from quiz_host.core.quiz_importer import parse_quiz_text
from quiz_host.core.services.leaderboard import Leaderboard
from quiz_host.core.services.quiz_analytics import QuizAnalytics, compute_quiz_analytics
from quiz_host.core.services.quiz_gate import QuizGate, clean_participant_name
from quiz_host.core.services.quiz_repository import QuizRepository
from quiz_host.core.services.quiz_runner import QuizRunner, RunnerSnapshot, RunnerState
from quiz_host.core.services.record_store import RecordStore
from quiz_host.core.services.session_store import SessionStore

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class _RunnerEntry:
    runner: QuizRunner
    last_used: datetime


class QuizManager:
    """Facade for quiz services: Repository, Gate, Runners, Leaderboard and Sessions."""

    def __init__(
        self,
        store: RecordStore,
        clock: Callable[[], datetime] = _utc_now,
        rng: random.Random | None = None,
        runner_idle_timeout_seconds: int = RUNNER_IDLE_TIMEOUT_SECONDS,
    ) -> None:
        self._lock = Lock()
        self._store = store
        self._clock = clock
        self._rng = rng
        self._runner_idle_timeout = timedelta(seconds=runner_idle_timeout_seconds)

        # Services
        self._repository = QuizRepository(store)
        self._gate = QuizGate(self._repository)
        self._sessions = SessionStore(clock=clock)
        self._runners: dict[str, _RunnerEntry] = {}

    @property
    def repository(self) -> QuizRepository:
        return self._repository

    def close(self) -> None:
        self._store.close()

    def now(self) -> datetime:
        return self._clock()

    # --- Session Delegation ---

    def ensure_session(self, token: str | None) -> tuple[str, ParticipantSession]:
        return self._sessions.get_or_create(token)

    def get_session(self, token: str | None) -> ParticipantSession | None:
        return self._sessions.get(token)

    def active_session_count(self) -> int:
        return len(self._sessions)

    # --- Gate Delegation ---

    def resolve_quiz(self, reference: str) -> Quiz:
        return self._gate.resolve(reference)

    def check_participant_name(self, name: str | None) -> str:
        return clean_participant_name(name)

    def start_attempt(self, reference: str, name: str | None, session: ParticipantSession) -> Attempt:
        previous_attempt_id = session.attempt_id
        attempt = self._gate.start(reference, name, session)
        if previous_attempt_id:
            with self._lock:
                self._runners.pop(previous_attempt_id, None)
        return attempt

    # --- Runner Delegation ---

    def runner_snapshot(self, session: ParticipantSession) -> RunnerSnapshot:
        """Start the participant's runner if needed and apply any expired countdown."""
        runner = self._runner_for(session)
        runner.check_timeout()
        return self._snapshot_and_release(runner)

    def submit_answer(self, session: ParticipantSession, option_id: str) -> RunnerSnapshot:
        runner = self._runner_for(session)
        runner.select_option(option_id)
        return self._snapshot_and_release(runner)

    def expire_question(self, session: ParticipantSession) -> RunnerSnapshot:
        runner = self._runner_for(session)
        runner.check_timeout()
        return self._snapshot_and_release(runner)

    def finish_attempt(self, session: ParticipantSession) -> RunnerSnapshot:
        runner = self._runner_for(session)
        runner.finish()
        return self._snapshot_and_release(runner)

    def active_runner_count(self) -> int:
        self._evict_idle_runners()
        with self._lock:
            return len(self._runners)

    def _runner_for(self, session: ParticipantSession) -> QuizRunner:
        self._evict_idle_runners()
        attempt_id = session.attempt_id
        now = self._clock()
        with self._lock:
            entry = self._runners.get(attempt_id) if attempt_id else None
            if entry is None:
                entry = _RunnerEntry(QuizRunner(self._repository, session, clock=self._clock, rng=self._rng), now)
                if attempt_id:
                    self._runners[attempt_id] = entry
            entry.last_used = now
        runner = entry.runner
        try:
            runner.start()
        except QuizUnavailableError:
            self._release(runner)
            raise
        return runner

    def _snapshot_and_release(self, runner: QuizRunner) -> RunnerSnapshot:
        snapshot = runner.snapshot()
        if snapshot.state in (RunnerState.FINISHED, RunnerState.UNAVAILABLE):
            self._release(runner)
        return snapshot

    def _release(self, runner: QuizRunner) -> None:
        with self._lock:
            for attempt_id, entry in list(self._runners.items()):
                if entry.runner is runner:
                    del self._runners[attempt_id]
                    logger.debug("Released runner for attempt %s", attempt_id)

    def _evict_idle_runners(self) -> None:
        cutoff = self._clock() - self._runner_idle_timeout
        with self._lock:
            stale = [attempt_id for attempt_id, entry in self._runners.items() if entry.last_used < cutoff]
            evicted = [self._runners.pop(attempt_id).runner for attempt_id in stale]
        for runner in evicted:
            runner.abandon()
        if evicted:
            logger.info("Dropped %d idle runner(s)", len(evicted))

    # --- Leaderboard ---

    def find_quiz(self, reference: str) -> Quiz:
        """Look a quiz up by id or code regardless of whether it is open."""
        kind, value = parse_quiz_reference(reference)
        if kind == "code":
            return self._repository.get_quiz_by_code(value)
        return self._repository.get_quiz(value)

    def load_leaderboard(self, reference: str) -> Leaderboard:
        quiz = self.find_quiz(reference)
        leaderboard = Leaderboard(self._repository, quiz.id)
        leaderboard.refresh()
        return leaderboard

    # --- Admin ---

    def list_quizzes(self, search: str | None = None, status: str = "all") -> list[Quiz]:
        return self._repository.list_quizzes(search=search, status=status)

    def get_quiz(self, quiz_id: str) -> Quiz:
        return self._repository.get_quiz(quiz_id)

    def create_quiz(self, draft: QuizDraft) -> Quiz:
        return self._repository.create_quiz(draft)

    def update_quiz(self, quiz_id: str, draft: QuizDraft) -> Quiz:
        return self._repository.update_quiz(quiz_id, draft)

    def set_quiz_open(self, quiz_id: str, is_open: bool) -> Quiz:
        return self._repository.set_quiz_open(quiz_id, is_open)

    def delete_quiz(self, quiz_id: str) -> None:
        self._repository.delete_quiz(quiz_id)

    def list_questions(self, quiz_id: str) -> list[Question]:
        self._repository.get_quiz(quiz_id)
        return self._repository.list_questions(quiz_id)

    def add_question(self, quiz_id: str, draft: QuestionDraft) -> Question:
        return self._repository.add_question(quiz_id, draft)

    def delete_question(self, question_id: str) -> None:
        self._repository.delete_question(question_id)

    def import_questions(self, quiz_id: str, text: str) -> list[Question]:
        drafts = parse_quiz_text(text)
        return self._repository.add_questions(quiz_id, drafts)

    def export_questions(self, quiz_id: str) -> str:
        return serialize_questions(self.list_questions(quiz_id))

    def quiz_analytics(self, quiz_id: str) -> QuizAnalytics:
        return compute_quiz_analytics(self._repository, quiz_id)
