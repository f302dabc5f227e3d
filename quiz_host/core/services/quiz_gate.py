"""Quiz Gate: resolves a shared quiz reference and opens an attempt."""

from __future__ import annotations

import logging
from typing import Callable

from quiz_host.constants.quiz_constants import MAX_PARTICIPANT_NAME_LENGTH
from quiz_host.core.errors import NameRequiredError, QuizValidationError
from quiz_host.core.identifiers import generate_device_token, parse_quiz_reference
from quiz_host.core.models import Attempt, ParticipantSession, Quiz
from quiz_host.core.services.quiz_repository import QuizRepository

logger = logging.getLogger(__name__)


def clean_participant_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise NameRequiredError("Please enter your name to continue.")
    if len(cleaned) > MAX_PARTICIPANT_NAME_LENGTH:
        raise QuizValidationError(f"Names can be at most {MAX_PARTICIPANT_NAME_LENGTH} characters long.")
    return cleaned


class QuizGate:
    """Entry point for participants: name in, attempt out."""

    def __init__(
        self,
        repository: QuizRepository,
        token_factory: Callable[[], str] = generate_device_token,
    ) -> None:
        self._repository = repository
        self._token_factory = token_factory

    def resolve(self, reference: str) -> Quiz:
        """Return the open quiz behind an id or 6-character code.

        Raises ``QuizValidationError`` for malformed references without
        touching the store, and ``QuizUnavailableError`` when the quiz is
        missing or closed.
        """
        kind, value = parse_quiz_reference(reference)
        if kind == "code":
            return self._repository.get_open_quiz_by_code(value)
        return self._repository.get_open_quiz(value)

    def start(self, reference: str, name: str | None, session: ParticipantSession) -> Attempt:
        """Create an attempt and remember it in the participant session."""
        participant_name = clean_participant_name(name)
        quiz = self.resolve(reference)
        device_token = self._token_factory()
        attempt = self._repository.create_attempt(quiz.id, participant_name, device_token)
        session.attempt_id = attempt.id
        session.device_token = device_token
        session.name = participant_name
        logger.info("Started attempt %s on quiz %s for %r", attempt.id, quiz.id, participant_name)
        return attempt
