"""Per-question countdown used by the quiz runner."""

from __future__ import annotations

from datetime import datetime
import math
from typing import Callable


class QuestionTimer:
    """Counts whole seconds down from the quiz's per-question limit.

    The remaining value drops by one for each full second elapsed since
    ``started_at``. Without a limit the timer never expires.
    """

    def __init__(
        self,
        limit_seconds: int | None,
        started_at: datetime,
        clock: Callable[[], datetime],
    ) -> None:
        self._limit_seconds = limit_seconds
        self._started_at = started_at
        self._clock = clock

    def elapsed_ms(self) -> int:
        delta = self._clock() - self._started_at
        return max(0, int(delta.total_seconds() * 1000))

    def remaining_seconds(self) -> int | None:
        if self._limit_seconds is None:
            return None
        elapsed_whole_seconds = math.floor(self.elapsed_ms() / 1000)
        return max(0, self._limit_seconds - elapsed_whole_seconds)

    def is_expired(self) -> bool:
        remaining = self.remaining_seconds()
        return remaining is not None and remaining == 0
