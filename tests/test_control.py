from __future__ import annotations

import threading
import time

import allure

from bulk_runner.engine.control import CancellationToken

pytestmark = [
    allure.epic("Bulk Engine"),
    allure.feature("Pause & Stop Signals"),
]


def test_stop_clears_pause() -> None:
    token = CancellationToken()
    token.pause()

    token.stop()

    assert token.stopped
    assert not token.paused


def test_wait_while_paused_passes_through_when_not_paused() -> None:
    token = CancellationToken()
    calls: list[str] = []

    assert token.wait_while_paused(0.01, on_pause=lambda: calls.append("pause"))
    assert calls == []


def test_wait_while_paused_returns_false_once_stopped() -> None:
    token = CancellationToken()
    token.pause()
    timer = threading.Timer(0.05, token.stop)
    timer.start()

    assert token.wait_while_paused(0.01) is False
    timer.join()


def test_wait_while_paused_runs_callbacks_around_pause() -> None:
    token = CancellationToken()
    token.pause()
    calls: list[str] = []
    timer = threading.Timer(0.05, token.resume)
    timer.start()

    resumed = token.wait_while_paused(
        0.01,
        on_pause=lambda: calls.append("pause"),
        on_resume=lambda: calls.append("resume"),
    )

    timer.join()
    assert resumed
    assert calls == ["pause", "resume"]


def test_sleep_completes_short_delay() -> None:
    token = CancellationToken()

    assert token.sleep(0.05, tick_seconds=0.01, poll_seconds=0.01)


def test_sleep_is_interrupted_by_stop() -> None:
    token = CancellationToken()
    timer = threading.Timer(0.05, token.stop)
    timer.start()
    started = time.monotonic()

    finished = token.sleep(10.0, tick_seconds=0.5, poll_seconds=0.01)

    timer.join()
    assert finished is False
    assert time.monotonic() - started < 2.0


def test_paused_time_does_not_count_towards_delay() -> None:
    token = CancellationToken()
    token.pause()
    timer = threading.Timer(0.2, token.resume)
    timer.start()
    started = time.monotonic()

    finished = token.sleep(0.1, tick_seconds=0.02, poll_seconds=0.01)

    timer.join()
    assert finished
    assert time.monotonic() - started >= 0.25
