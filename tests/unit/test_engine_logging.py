"""Unit tests for calendar_engine.engine_logging."""

import logging
from collections.abc import Generator
from typing import Any

import pytest

from calendar_engine.engine_logging import (
    ENGINE_MODULES,
    configure_engine_logging,
    get_logging_status,
)

pytestmark = [pytest.mark.unit, pytest.mark.fast]


@pytest.fixture(autouse=True)
def restore_levels(clean_env) -> Generator[None, Any, None]:
    names = ["", *ENGINE_MODULES, "httpx", "aiohttp.access", "asyncio"]
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


def test_production_mode_quiets_http_libraries() -> None:
    configure_engine_logging(debug_mode=False)

    assert logging.getLogger("calendar_engine").level == logging.INFO
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("aiohttp.access").level == logging.WARNING


def test_debug_mode_enables_engine_debug() -> None:
    configure_engine_logging(debug_mode=True)

    assert logging.getLogger("calendar_engine.engine").level == logging.DEBUG
    assert logging.getLogger().level == logging.DEBUG


def test_env_var_forces_debug(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CALENDAR_ENGINE_DEBUG", "true")

    configure_engine_logging(debug_mode=False)

    assert logging.getLogger("calendar_engine").level == logging.DEBUG


def test_force_debug_overrides_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CALENDAR_ENGINE_DEBUG", "1")

    configure_engine_logging(force_debug=False)

    assert logging.getLogger("calendar_engine").level == logging.INFO


def test_env_log_level_sets_root(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CALENDAR_ENGINE_LOG_LEVEL", "warning")

    configure_engine_logging()

    assert logging.getLogger().level == logging.WARNING


def test_get_logging_status_reports_levels() -> None:
    configure_engine_logging()

    status = get_logging_status()

    assert status["calendar_engine"] == "INFO"
    assert status["httpx"] == "WARNING"
    assert "root" in status
