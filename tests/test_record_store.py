from __future__ import annotations

import json

import httpx
import pytest

from quiz_host.core.errors import RecordNotFoundError, RecordStoreError
from quiz_host.core.services.record_store import InMemoryRecordStore, RecordStore
from quiz_host.core.services.rest_record_store import RestRecordStore, build_filter_params


def test_in_memory_insert_fills_backend_defaults(store: InMemoryRecordStore) -> None:
    quiz = store.insert("quizzes", {"title": "Rivers"})
    assert quiz["id"]
    assert quiz["is_open"] is False
    assert quiz["scoring_strategy"] == "most_correct_then_fastest"
    assert len(quiz["quiz_code"]) == 6
    attempt = store.insert("attempts", {"quiz_id": quiz["id"], "name": "Ana", "device_token": "t"})
    assert attempt["submitted_at"] is None
    assert attempt["total_correct"] == 0


def test_in_memory_returns_copies(store: InMemoryRecordStore) -> None:
    row = store.insert("quizzes", {"title": "Rivers"})
    row["title"] = "Changed"
    assert store.select_one("quizzes", eq={"id": row["id"]})["title"] == "Rivers"


def test_in_memory_filters_and_orders(store: InMemoryRecordStore) -> None:
    for name, correct in [("a", 1), ("b", 3), ("c", 2)]:
        store.insert("attempts", {"quiz_id": "z", "name": name, "device_token": "t", "total_correct": correct})
    store.update("attempts", {"submitted_at": "2024-05-15T12:00:00+00:00"}, eq={"name": "c"})

    ordered = store.select("attempts", eq={"quiz_id": "z"}, order=[("total_correct", False)])
    assert [row["name"] for row in ordered] == ["b", "c", "a"]
    submitted = store.select("attempts", not_null=("submitted_at",))
    assert [row["name"] for row in submitted] == ["c"]
    picked = store.select("attempts", in_={"name": ["a", "b"]}, order=[("name", True)])
    assert [row["name"] for row in picked] == ["a", "b"]
    assert store.count("attempts", eq={"quiz_id": "z"}) == 3
    assert store.delete("attempts", eq={"name": "a"}) == 1
    assert store.count("attempts") == 2


def test_in_memory_select_one_raises_when_missing(store: InMemoryRecordStore) -> None:
    with pytest.raises(RecordNotFoundError):
        store.select_one("quizzes", eq={"id": "missing"})


def test_unknown_table_is_a_store_error(store: InMemoryRecordStore) -> None:
    with pytest.raises(RecordStoreError):
        store.select("nope")


def test_filter_params_use_postgrest_operators() -> None:
    params = build_filter_params(
        eq={"quiz_id": "z1", "is_open": True, "submitted_at": None},
        not_null=("answered_at",),
        in_={"attempt_id": ["a", "b"]},
    )
    assert params == [
        ("quiz_id", "eq.z1"),
        ("is_open", "eq.true"),
        ("submitted_at", "is.null"),
        ("answered_at", "not.is.null"),
        ("attempt_id", "in.(a,b)"),
    ]


def test_rest_store_select_sends_filters_and_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"id": "q1", "title": "Rivers"}])

    store = RestRecordStore("https://backend.example", api_key="secret", transport=httpx.MockTransport(handler))
    rows = store.select("quizzes", eq={"quiz_code": "ABC123"}, order=[("created_at", False)], limit=1)

    assert rows == [{"id": "q1", "title": "Rivers"}]
    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/rest/v1/quizzes"
    assert request.url.params["quiz_code"] == "eq.ABC123"
    assert request.url.params["order"] == "created_at.desc"
    assert request.url.params["limit"] == "1"
    assert request.headers["apikey"] == "secret"
    assert request.headers["Authorization"] == "Bearer secret"


def test_rest_store_insert_asks_for_representation() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.headers["Prefer"] == "return=representation"
        body = json.loads(request.content)
        return httpx.Response(201, json=[{"id": "a1", **body}])

    store = RestRecordStore("https://backend.example", transport=httpx.MockTransport(handler))
    row = store.insert("attempts", {"quiz_id": "z1", "name": "Ana"})
    assert row == {"id": "a1", "quiz_id": "z1", "name": "Ana"}


def test_rest_store_count_reads_content_range() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "HEAD"
        assert request.headers["Prefer"] == "count=exact"
        return httpx.Response(200, headers={"Content-Range": "0-4/5"})

    store = RestRecordStore("https://backend.example", transport=httpx.MockTransport(handler))
    assert store.count("questions", eq={"quiz_id": "z1"}) == 5


def test_rest_store_maps_http_errors() -> None:
    store = RestRecordStore(
        "https://backend.example",
        transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")),
    )
    with pytest.raises(RecordStoreError) as excinfo:
        store.update("attempts", {"total_correct": 1}, eq={"id": "a1"})
    assert excinfo.value.table == "attempts"
    assert excinfo.value.operation == "update"


def test_rest_store_maps_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    store = RestRecordStore("https://backend.example", transport=httpx.MockTransport(handler))
    with pytest.raises(RecordStoreError):
        store.select("quizzes")


def test_partial_backend_fails_at_construction() -> None:
    class ReadOnlyStore(RecordStore):
        def select(self, table, **filters):
            return []

    with pytest.raises(TypeError):
        ReadOnlyStore()
