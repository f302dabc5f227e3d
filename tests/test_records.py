from __future__ import annotations

from datetime import datetime, timezone

import pytest

from quiz_host.core.errors import RecordDecodeError
from quiz_host.core.records import decode_attempt, decode_options, decode_question, parse_timestamp


def test_options_decode_from_json_text() -> None:
    options = decode_options('[{"id": "a", "text": "Paris"}, {"id": "b", "text": "Rome"}]')
    assert [(option.id, option.text) for option in options] == [("a", "Paris"), ("b", "Rome")]


def test_options_must_be_a_list_of_objects() -> None:
    with pytest.raises(RecordDecodeError):
        decode_options('{"id": "a"}')
    with pytest.raises(RecordDecodeError):
        decode_options(["Paris", "Rome"])
    with pytest.raises(RecordDecodeError):
        decode_options("not json")


def test_question_without_options_is_rejected() -> None:
    with pytest.raises(RecordDecodeError):
        decode_question({"id": "q1", "quiz_id": "z1", "text": "Capital?"})


def test_attempt_defaults_and_timestamps() -> None:
    attempt = decode_attempt(
        {
            "id": "a1",
            "quiz_id": "z1",
            "name": "Ana",
            "device_token": "1-abc",
            "started_at": "2024-05-15T12:00:00Z",
            "submitted_at": None,
        }
    )
    assert attempt.started_at == datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)
    assert not attempt.is_submitted
    assert attempt.total_correct == 0
    assert attempt.total_time_ms == 0


def test_naive_timestamps_are_treated_as_utc() -> None:
    assert parse_timestamp("2024-05-15T12:00:00").tzinfo == timezone.utc
    assert parse_timestamp(None) is None
