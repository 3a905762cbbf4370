from __future__ import annotations

import allure
import pytest

from bulk_runner.config import (
    DispatchSettings,
    EngineSettings,
    ReconcileSettings,
    Settings,
    ThrottleSettings,
)

pytestmark = [
    allure.epic("Bulk Engine"),
    allure.feature("Configuration"),
]


def test_defaults_when_env_is_empty() -> None:
    settings = Settings.from_env()

    assert settings.engine.pause_poll_seconds == 0.5
    assert settings.engine.throttle_tick_seconds == 1.0
    assert settings.engine.auto_hide_seconds == 2.0
    assert settings.engine.on_active == "reject"
    assert settings.throttle.fixed_delay_seconds == 0.1
    assert (settings.throttle.jitter_min_seconds, settings.throttle.jitter_max_seconds) == (15, 40)
    assert settings.dispatch.api_url == "http://localhost:8081"
    assert settings.reconcile.similarity_threshold == 0.6
    settings.validate()


def test_from_env_reads_overrides(monkeypatch) -> None:
    monkeypatch.setenv("BULK_RUNNER_ON_ACTIVE", " Force ")
    monkeypatch.setenv("BULK_RUNNER_JITTER_MIN_SECONDS", "1")
    monkeypatch.setenv("BULK_RUNNER_JITTER_MAX_SECONDS", "2.5")
    monkeypatch.setenv("BULK_RUNNER_DISPATCH_INSTANCE", "shop")
    monkeypatch.setenv("BULK_RUNNER_DISPATCH_MAX_RETRIES", "0")
    monkeypatch.setenv("BULK_RUNNER_MIN_PHONE_DIGITS", "8")

    settings = Settings.from_env()

    assert settings.engine.on_active == "force"
    assert settings.throttle.jitter_max_seconds == 2.5
    assert settings.dispatch.instance_name == "shop"
    assert settings.dispatch.max_retries == 0
    assert settings.reconcile.min_phone_digits == 8
    settings.validate_for_dispatch()


def test_validate_rejects_unknown_start_policy() -> None:
    settings = Settings(engine=EngineSettings(on_active="queue"))

    with pytest.raises(ValueError, match="Invalid BULK_RUNNER_ON_ACTIVE value"):
        settings.validate()


def test_validate_rejects_inverted_jitter_bounds() -> None:
    settings = Settings(throttle=ThrottleSettings(jitter_min_seconds=10, jitter_max_seconds=5))

    with pytest.raises(ValueError, match="JITTER_MAX_SECONDS"):
        settings.validate()


@pytest.mark.parametrize("threshold", [0.0, 1.5])
def test_validate_rejects_threshold_out_of_range(threshold: float) -> None:
    settings = Settings(reconcile=ReconcileSettings(similarity_threshold=threshold))

    with pytest.raises(ValueError, match="SIMILARITY_THRESHOLD"):
        settings.validate()


def test_validate_rejects_non_positive_poll() -> None:
    with pytest.raises(ValueError, match="PAUSE_POLL_SECONDS"):
        Settings(engine=EngineSettings(pause_poll_seconds=0)).validate()


def test_validate_allows_disabled_auto_hide() -> None:
    Settings(engine=EngineSettings(auto_hide_seconds=0)).validate()


def test_validate_for_dispatch_requires_instance() -> None:
    settings = Settings(dispatch=DispatchSettings(instance_name=" "))

    with pytest.raises(ValueError, match="gateway instance is required"):
        settings.validate_for_dispatch()


def test_validate_for_dispatch_rejects_invalid_url() -> None:
    settings = Settings(dispatch=DispatchSettings(api_url="ftp://gw", instance_name="shop"))

    with pytest.raises(ValueError, match="Invalid gateway URL"):
        settings.validate_for_dispatch()


def test_from_env_rejects_non_numeric_values(monkeypatch) -> None:
    monkeypatch.setenv("BULK_RUNNER_AUTO_HIDE_SECONDS", "soon")

    with pytest.raises(ValueError):
        Settings.from_env()
