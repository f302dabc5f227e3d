"""Quiz codes, device tokens and quiz reference parsing."""

from __future__ import annotations

import random
import re
import time

from quiz_host.constants.quiz_constants import QUIZ_CODE_ALPHABET, QUIZ_CODE_LENGTH
from quiz_host.core.errors import QuizValidationError

_CODE_PATTERN = re.compile(rf"^[A-Za-z0-9]{{{QUIZ_CODE_LENGTH}}}$")
_ID_PATTERN = re.compile(r"^[A-Za-z0-9-]+$")
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"

_system_rng = random.SystemRandom()


def generate_quiz_code(rng: random.Random | None = None) -> str:
    chooser = rng or _system_rng
    return "".join(chooser.choice(QUIZ_CODE_ALPHABET) for _ in range(QUIZ_CODE_LENGTH))


def generate_device_token(rng: random.Random | None = None) -> str:
    """Return ``<epoch-ms>-<9 base36 chars>``. Not a credential."""
    chooser = rng or _system_rng
    suffix = "".join(chooser.choice(_BASE36) for _ in range(9))
    return f"{int(time.time() * 1000)}-{suffix}"


def parse_quiz_reference(reference: str) -> tuple[str, str]:
    """Classify a gate reference as ``("code", CODE)`` or ``("id", value)``.

    Six alphanumeric characters are a share code and are upper-cased.
    Anything else must look like a record id.
    """
    cleaned = (reference or "").strip()
    if not cleaned:
        raise QuizValidationError("Enter a quiz code or link.")
    if _CODE_PATTERN.match(cleaned):
        return "code", cleaned.upper()
    if _ID_PATTERN.match(cleaned):
        return "id", cleaned
    raise QuizValidationError(f"'{cleaned}' is not a valid quiz code.")
