"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import Iterator

import pytest

from bulk_runner.config import EngineSettings
from bulk_runner.engine.controller import TaskQueueController


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    """Keep BULK_RUNNER_* values from the developer shell out of tests."""
    for name in list(os.environ):
        if name.startswith("BULK_RUNNER_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def fast_settings() -> EngineSettings:
    return EngineSettings(
        pause_poll_seconds=0.01,
        throttle_tick_seconds=0.01,
        auto_hide_seconds=0,
        join_timeout_seconds=5,
    )


@pytest.fixture()
def controller(fast_settings: EngineSettings) -> Iterator[TaskQueueController]:
    controller = TaskQueueController("test", settings=fast_settings)
    yield controller
    controller.shutdown(timeout=5)
