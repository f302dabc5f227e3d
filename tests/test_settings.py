from __future__ import annotations

import logging

import pytest

from app_main import create_record_store
from quiz_host.core.services.record_store import InMemoryRecordStore
from quiz_host.core.services.rest_record_store import RestRecordStore
from quiz_host.utils.logging_config import configure_logging
from quiz_host.utils.settings import Settings, load_settings


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("QUIZ_HOST_PORT", "9001")
    monkeypatch.setenv("QUIZ_HOST_STORE_URL", "https://backend.example")
    monkeypatch.setenv("QUIZ_HOST_STORE_TIMEOUT", "2.5")
    monkeypatch.setenv("QUIZ_HOST_ADMIN_TOKEN", "")

    settings = load_settings()

    assert settings.port == 9001
    assert settings.store_url == "https://backend.example"
    assert settings.store_timeout == 2.5
    assert settings.admin_token is None


def test_store_choice_follows_settings() -> None:
    assert isinstance(create_record_store(Settings()), InMemoryRecordStore)
    store = create_record_store(Settings(store_url="https://backend.example", store_key="key"))
    assert isinstance(store, RestRecordStore)
    store.close()


def test_configure_logging_returns_app_logger() -> None:
    logger = configure_logging("DEBUG")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "quiz_host"
