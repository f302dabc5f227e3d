"""Record store interface and the in-process implementation.

The quiz host never owns its data: quizzes, questions, attempts and answers
live in an external backend that exposes read-one, read-many, insert, update,
delete and count over named tables. ``RecordStore`` is that contract.
``InMemoryRecordStore`` emulates the backend, including the defaults the
backend fills in on insert, and is used for local runs and tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import copy
from datetime import datetime, timezone
import logging
from threading import Lock
from typing import Any, Callable, Iterable, Mapping, Sequence
from uuid import uuid4

from quiz_host.constants.quiz_constants import (
    DEFAULT_QUESTION_POINTS,
    SCORING_STRATEGY,
    TABLE_ANSWERS,
    TABLE_ATTEMPTS,
    TABLE_QUESTIONS,
    TABLE_QUIZZES,
)
from quiz_host.core.errors import RecordNotFoundError, RecordStoreError
from quiz_host.core.identifiers import generate_quiz_code
from quiz_host.core.records import format_timestamp

logger = logging.getLogger(__name__)

Record = dict[str, Any]
OrderBy = Sequence[tuple[str, bool]]  # (field, ascending)


class RecordStore(ABC):
    """Operations the quiz host needs from the record backend."""

    @abstractmethod
    def select(
        self,
        table: str,
        *,
        eq: Mapping[str, Any] | None = None,
        not_null: Iterable[str] = (),
        in_: Mapping[str, Sequence[Any]] | None = None,
        order: OrderBy = (),
        limit: int | None = None,
    ) -> list[Record]: ...

    @abstractmethod
    def insert(self, table: str, values: Mapping[str, Any]) -> Record: ...

    @abstractmethod
    def update(self, table: str, values: Mapping[str, Any], *, eq: Mapping[str, Any]) -> list[Record]: ...

    @abstractmethod
    def delete(self, table: str, *, eq: Mapping[str, Any]) -> int: ...

    @abstractmethod
    def count(self, table: str, *, eq: Mapping[str, Any] | None = None) -> int: ...

    def select_one(self, table: str, *, eq: Mapping[str, Any]) -> Record:
        """Return the single matching record or raise ``RecordNotFoundError``."""
        rows = self.select(table, eq=eq, limit=1)
        if not rows:
            raise RecordNotFoundError(
                f"No record in '{table}' matches {dict(eq)}.",
                table=table,
                operation="select",
            )
        return rows[0]

    def close(self) -> None:
        """Release network resources, if any."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryRecordStore(RecordStore):
    """Thread-safe dictionary-backed store with backend-style defaults."""

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._lock = Lock()
        self._clock = clock
        self._tables: dict[str, list[Record]] = {
            TABLE_QUIZZES: [],
            TABLE_QUESTIONS: [],
            TABLE_ATTEMPTS: [],
            TABLE_ANSWERS: [],
        }

    def select(
        self,
        table: str,
        *,
        eq: Mapping[str, Any] | None = None,
        not_null: Iterable[str] = (),
        in_: Mapping[str, Sequence[Any]] | None = None,
        order: OrderBy = (),
        limit: int | None = None,
    ) -> list[Record]:
        with self._lock:
            rows = [
                row
                for row in self._table(table)
                if self._matches(row, eq, not_null, in_)
            ]
            rows = self._sorted(rows, order)
            if limit is not None:
                rows = rows[:limit]
            return copy.deepcopy(rows)

    def insert(self, table: str, values: Mapping[str, Any]) -> Record:
        with self._lock:
            rows = self._table(table)
            row = self._with_defaults(table, dict(copy.deepcopy(values)))
            rows.append(row)
            logger.debug("Inserted %s record %s", table, row["id"])
            return copy.deepcopy(row)

    def update(self, table: str, values: Mapping[str, Any], *, eq: Mapping[str, Any]) -> list[Record]:
        with self._lock:
            updated: list[Record] = []
            for row in self._table(table):
                if self._matches(row, eq, (), None):
                    row.update(copy.deepcopy(dict(values)))
                    if table == TABLE_QUIZZES:
                        row["updated_at"] = format_timestamp(self._clock())
                    updated.append(copy.deepcopy(row))
            return updated

    def delete(self, table: str, *, eq: Mapping[str, Any]) -> int:
        with self._lock:
            rows = self._table(table)
            kept = [row for row in rows if not self._matches(row, eq, (), None)]
            removed = len(rows) - len(kept)
            rows[:] = kept
            return removed

    def count(self, table: str, *, eq: Mapping[str, Any] | None = None) -> int:
        with self._lock:
            return sum(1 for row in self._table(table) if self._matches(row, eq, (), None))

    def _table(self, table: str) -> list[Record]:
        try:
            return self._tables[table]
        except KeyError:
            raise RecordStoreError(f"Unknown table '{table}'.", table=table) from None

    @staticmethod
    def _matches(
        row: Record,
        eq: Mapping[str, Any] | None,
        not_null: Iterable[str],
        in_: Mapping[str, Sequence[Any]] | None,
    ) -> bool:
        if eq and any(row.get(key) != value for key, value in eq.items()):
            return False
        if any(row.get(key) is None for key in not_null):
            return False
        if in_ and any(row.get(key) not in values for key, values in in_.items()):
            return False
        return True

    @staticmethod
    def _sorted(rows: list[Record], order: OrderBy) -> list[Record]:
        # Stable sorts applied from the last key to the first; nulls sort last.
        for field_name, ascending in reversed(list(order)):
            if ascending:
                rows = sorted(rows, key=lambda r: (r.get(field_name) is None, r.get(field_name)))
            else:
                rows = sorted(
                    rows,
                    key=lambda r: (r.get(field_name) is not None, r.get(field_name)),
                    reverse=True,
                )
        return rows

    def _with_defaults(self, table: str, row: Record) -> Record:
        now = format_timestamp(self._clock())
        row.setdefault("id", str(uuid4()))
        if table == TABLE_QUIZZES:
            row.setdefault("description", None)
            row.setdefault("is_open", False)
            row.setdefault("scoring_strategy", SCORING_STRATEGY)
            row.setdefault("shuffle_questions", False)
            row.setdefault("shuffle_options", False)
            row.setdefault("time_per_question_sec", None)
            if not row.get("quiz_code"):
                row["quiz_code"] = self._unique_quiz_code()
            row.setdefault("created_at", now)
            row.setdefault("updated_at", now)
        elif table == TABLE_QUESTIONS:
            row.setdefault("points", DEFAULT_QUESTION_POINTS)
            row.setdefault("order_num", 0)
            row.setdefault("created_at", now)
        elif table == TABLE_ATTEMPTS:
            row.setdefault("started_at", now)
            row.setdefault("submitted_at", None)
            row.setdefault("total_correct", 0)
            row.setdefault("total_time_ms", 0)
            row.setdefault("created_at", now)
        elif table == TABLE_ANSWERS:
            row.setdefault("answered_at", now)
        return row

    def _unique_quiz_code(self) -> str:
        taken = {row.get("quiz_code") for row in self._tables[TABLE_QUIZZES]}
        code = generate_quiz_code()
        while code in taken:
            code = generate_quiz_code()
        return code
