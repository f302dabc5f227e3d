"""Exceptions raised by the quiz host services."""

from __future__ import annotations


class QuizHostError(Exception):
    """Base class for errors surfaced to participants and administrators."""


class QuizUnavailableError(QuizHostError):
    """The quiz, its questions, or the participant's attempt cannot be used."""


class QuizValidationError(QuizHostError, ValueError):
    """Input was rejected locally before any remote call was made."""


class NameRequiredError(QuizValidationError):
    """The participant did not supply a display name."""


class RunnerStateError(QuizHostError, RuntimeError):
    """The requested action is not valid in the runner's current state."""


class RecordStoreError(QuizHostError):
    """The record backend could not complete a request."""

    def __init__(self, message: str, *, table: str | None = None, operation: str | None = None) -> None:
        super().__init__(message)
        self.table = table
        self.operation = operation


class RecordNotFoundError(RecordStoreError):
    """A read-one request matched no record."""


class RecordDecodeError(RecordStoreError):
    """A record returned by the backend does not have the expected shape."""
