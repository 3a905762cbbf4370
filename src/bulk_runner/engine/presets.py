"""Run option presets for the three kinds of bulk run.

Deletes, imports and message campaigns share one engine; they differ only in
pacing, cache side effects and preflight checks.
"""

from __future__ import annotations

import random
from collections.abc import Callable

from bulk_runner.config import ThrottleSettings
from bulk_runner.engine.cache import CacheAdapter, CacheReconciliationHook
from bulk_runner.engine.lane import RunOptions
from bulk_runner.engine.models import RunKind
from bulk_runner.engine.throttle import FixedSmallDelay, RandomizedJitterDelay

CAMPAIGN_DOMAIN = "customers"


def delete_options(
    subject_domain: str,
    *,
    cache: CacheAdapter | None = None,
    throttle: ThrottleSettings | None = None,
    on_active: str | None = None,
) -> RunOptions:
    settings = throttle or ThrottleSettings()
    return RunOptions(
        kind=RunKind.DELETE,
        subject_domain=subject_domain,
        throttle=FixedSmallDelay(settings.fixed_delay_seconds),
        cache_hook=CacheReconciliationHook(cache),
        on_active=on_active,
        success_message="Deleted successfully",
    )


def import_options(
    subject_domain: str,
    *,
    cache: CacheAdapter | None = None,
    throttle: ThrottleSettings | None = None,
    on_active: str | None = None,
) -> RunOptions:
    settings = throttle or ThrottleSettings()
    return RunOptions(
        kind=RunKind.IMPORT,
        subject_domain=subject_domain,
        throttle=FixedSmallDelay(settings.fixed_delay_seconds),
        cache_hook=CacheReconciliationHook(cache),
        on_active=on_active,
        success_message="Imported successfully",
    )


def dispatch_options(  # noqa: PLR0913
    *,
    subject_domain: str = CAMPAIGN_DOMAIN,
    throttle: ThrottleSettings | None = None,
    preflight: Callable[[], None] | None = None,
    cache: CacheAdapter | None = None,
    on_active: str | None = None,
    rng: random.Random | None = None,
) -> RunOptions:
    """Options for sends over an abuse-sensitive channel: jittered pacing."""

    settings = throttle or ThrottleSettings()
    return RunOptions(
        kind=RunKind.DISPATCH,
        subject_domain=subject_domain,
        throttle=RandomizedJitterDelay(
            settings.jitter_min_seconds,
            settings.jitter_max_seconds,
            rng=rng,
        ),
        cache_hook=CacheReconciliationHook(cache),
        preflight=preflight,
        on_active=on_active,
        success_message="Message sent successfully",
    )
