"""Runtime configuration for the bulk operation engine and its collaborators."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from urllib.parse import urlparse

START_POLICIES = frozenset({"reject", "force"})


@dataclass(slots=True)
class EngineSettings:
    """Lane timing and lifecycle settings."""

    pause_poll_seconds: float = 0.5
    throttle_tick_seconds: float = 1.0
    auto_hide_seconds: float = 2.0
    on_active: str = "reject"
    join_timeout_seconds: float = 15.0


@dataclass(slots=True)
class ThrottleSettings:
    """Inter-item delay settings."""

    fixed_delay_seconds: float = 0.1
    jitter_min_seconds: float = 15.0
    jitter_max_seconds: float = 40.0


@dataclass(slots=True)
class DispatchSettings:
    """Outbound message gateway settings."""

    api_url: str = "http://localhost:8081"
    api_key: str = ""
    instance_name: str = ""
    request_timeout_seconds: float = 30.0
    max_retries: int = 2


@dataclass(slots=True)
class ReconcileSettings:
    """Duplicate detection settings."""

    similarity_threshold: float = 0.6
    min_phone_digits: int = 10


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    engine: EngineSettings = field(default_factory=EngineSettings)
    throttle: ThrottleSettings = field(default_factory=ThrottleSettings)
    dispatch: DispatchSettings = field(default_factory=DispatchSettings)
    reconcile: ReconcileSettings = field(default_factory=ReconcileSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            engine=EngineSettings(
                pause_poll_seconds=float(os.getenv("BULK_RUNNER_PAUSE_POLL_SECONDS", "0.5")),
                throttle_tick_seconds=float(
                    os.getenv("BULK_RUNNER_THROTTLE_TICK_SECONDS", "1.0"),
                ),
                auto_hide_seconds=float(os.getenv("BULK_RUNNER_AUTO_HIDE_SECONDS", "2.0")),
                on_active=os.getenv("BULK_RUNNER_ON_ACTIVE", "reject").strip().lower(),
                join_timeout_seconds=float(
                    os.getenv("BULK_RUNNER_JOIN_TIMEOUT_SECONDS", "15"),
                ),
            ),
            throttle=ThrottleSettings(
                fixed_delay_seconds=float(
                    os.getenv("BULK_RUNNER_FIXED_DELAY_SECONDS", "0.1"),
                ),
                jitter_min_seconds=float(os.getenv("BULK_RUNNER_JITTER_MIN_SECONDS", "15")),
                jitter_max_seconds=float(os.getenv("BULK_RUNNER_JITTER_MAX_SECONDS", "40")),
            ),
            dispatch=DispatchSettings(
                api_url=os.getenv("BULK_RUNNER_DISPATCH_API_URL", "http://localhost:8081"),
                api_key=os.getenv("BULK_RUNNER_DISPATCH_API_KEY", ""),
                instance_name=os.getenv("BULK_RUNNER_DISPATCH_INSTANCE", ""),
                request_timeout_seconds=float(
                    os.getenv("BULK_RUNNER_DISPATCH_TIMEOUT_SECONDS", "30"),
                ),
                max_retries=int(os.getenv("BULK_RUNNER_DISPATCH_MAX_RETRIES", "2")),
            ),
            reconcile=ReconcileSettings(
                similarity_threshold=float(
                    os.getenv("BULK_RUNNER_SIMILARITY_THRESHOLD", "0.6"),
                ),
                min_phone_digits=int(os.getenv("BULK_RUNNER_MIN_PHONE_DIGITS", "10")),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for out-of-range engine and throttle values."""

        if self.engine.pause_poll_seconds <= 0:
            raise ValueError("BULK_RUNNER_PAUSE_POLL_SECONDS must be > 0.")
        if self.engine.throttle_tick_seconds <= 0:
            raise ValueError("BULK_RUNNER_THROTTLE_TICK_SECONDS must be > 0.")
        if self.engine.auto_hide_seconds < 0:
            raise ValueError("BULK_RUNNER_AUTO_HIDE_SECONDS must be >= 0.")
        if self.engine.on_active not in START_POLICIES:
            raise ValueError(
                "Invalid BULK_RUNNER_ON_ACTIVE value: "
                f"{self.engine.on_active!r}. Expected one of: {', '.join(sorted(START_POLICIES))}.",
            )
        if self.throttle.fixed_delay_seconds < 0:
            raise ValueError("BULK_RUNNER_FIXED_DELAY_SECONDS must be >= 0.")
        if self.throttle.jitter_min_seconds < 0:
            raise ValueError("BULK_RUNNER_JITTER_MIN_SECONDS must be >= 0.")
        if self.throttle.jitter_max_seconds < self.throttle.jitter_min_seconds:
            raise ValueError(
                "BULK_RUNNER_JITTER_MAX_SECONDS must be >= BULK_RUNNER_JITTER_MIN_SECONDS.",
            )
        if not 0.0 < self.reconcile.similarity_threshold <= 1.0:
            raise ValueError("BULK_RUNNER_SIMILARITY_THRESHOLD must be in (0, 1].")

    def validate_for_dispatch(self) -> None:
        """Raise configuration error if the message gateway is not usable."""

        self.validate()
        _validate_api_url(self.dispatch.api_url)
        if not self.dispatch.instance_name.strip():
            raise ValueError(
                "A gateway instance is required. Set BULK_RUNNER_DISPATCH_INSTANCE.",
            )
        if self.dispatch.request_timeout_seconds <= 0:
            raise ValueError("BULK_RUNNER_DISPATCH_TIMEOUT_SECONDS must be > 0.")
        if self.dispatch.max_retries < 0:
            raise ValueError("BULK_RUNNER_DISPATCH_MAX_RETRIES must be >= 0.")


def _validate_api_url(value: str) -> None:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(
            "Invalid gateway URL: "
            f"{value!r}. Expected an absolute URL with http:// or https:// scheme.",
        )
