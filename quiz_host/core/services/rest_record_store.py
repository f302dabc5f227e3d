"""Record store backed by a PostgREST-style HTTP API."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

import httpx

from quiz_host.constants.network_constants import STORE_REQUEST_TIMEOUT_SECONDS, STORE_REST_PATH
from quiz_host.core.errors import RecordStoreError
from quiz_host.core.services.record_store import OrderBy, Record, RecordStore

logger = logging.getLogger(__name__)


def _literal(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_filter_params(
    eq: Mapping[str, Any] | None = None,
    not_null: Iterable[str] = (),
    in_: Mapping[str, Sequence[Any]] | None = None,
) -> list[tuple[str, str]]:
    """Translate filters into PostgREST query parameters."""
    params: list[tuple[str, str]] = []
    for key, value in (eq or {}).items():
        params.append((key, f"is.{_literal(value)}" if value is None else f"eq.{_literal(value)}"))
    for key in not_null:
        params.append((key, "not.is.null"))
    for key, values in (in_ or {}).items():
        joined = ",".join(_literal(value) for value in values)
        params.append((key, f"in.({joined})"))
    return params


class RestRecordStore(RecordStore):
    """Talks to ``{base_url}/rest/v1/{table}`` with an API key."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = STORE_REQUEST_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/") + STORE_REST_PATH,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

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
        params = [("select", "*")] + build_filter_params(eq, not_null, in_)
        if order:
            params.append(
                ("order", ",".join(f"{name}.{'asc' if ascending else 'desc'}" for name, ascending in order))
            )
        if limit is not None:
            params.append(("limit", str(limit)))
        response = self._send("GET", table, "select", params=params)
        return list(response.json())

    def insert(self, table: str, values: Mapping[str, Any]) -> Record:
        response = self._send(
            "POST",
            table,
            "insert",
            json=dict(values),
            headers={"Prefer": "return=representation"},
        )
        rows = response.json()
        if not rows:
            raise RecordStoreError(f"Insert into '{table}' returned no record.", table=table, operation="insert")
        return rows[0]

    def update(self, table: str, values: Mapping[str, Any], *, eq: Mapping[str, Any]) -> list[Record]:
        response = self._send(
            "PATCH",
            table,
            "update",
            params=build_filter_params(eq),
            json=dict(values),
            headers={"Prefer": "return=representation"},
        )
        return list(response.json())

    def delete(self, table: str, *, eq: Mapping[str, Any]) -> int:
        response = self._send(
            "DELETE",
            table,
            "delete",
            params=build_filter_params(eq),
            headers={"Prefer": "return=representation"},
        )
        return len(response.json())

    def count(self, table: str, *, eq: Mapping[str, Any] | None = None) -> int:
        response = self._send(
            "HEAD",
            table,
            "count",
            params=[("select", "*")] + build_filter_params(eq),
            headers={"Prefer": "count=exact"},
        )
        content_range = response.headers.get("Content-Range", "")
        _, _, total = content_range.partition("/")
        try:
            return int(total)
        except ValueError as exc:
            raise RecordStoreError(
                f"Count on '{table}' returned no total.", table=table, operation="count"
            ) from exc

    def close(self) -> None:
        self._client.close()

    def _send(self, method: str, table: str, operation: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, f"/{table}", **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Record store %s on %s failed with HTTP %s: %s",
                operation,
                table,
                exc.response.status_code,
                exc.response.text,
            )
            raise RecordStoreError(
                f"Backend rejected {operation} on '{table}' (HTTP {exc.response.status_code}).",
                table=table,
                operation=operation,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Record store %s on %s failed: %s", operation, table, exc)
            raise RecordStoreError(
                f"Backend unreachable during {operation} on '{table}'.",
                table=table,
                operation=operation,
            ) from exc
        return response
