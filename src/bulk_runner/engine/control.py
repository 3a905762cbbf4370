"""Cooperative pause/stop flags shared between a controller and its lane."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class CancellationToken:
    """Live pause/stop cells polled by the lane at every checkpoint.

    The lane holds a reference to the token, never a copy of its values, so a
    controller command is visible at the next checkpoint.
    """

    def __init__(self) -> None:
        self._paused = threading.Event()
        self._stopped = threading.Event()

    @property
    def paused(self) -> bool:
        return self._paused.is_set()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def pause(self) -> None:
        self._paused.set()

    def resume(self) -> None:
        self._paused.clear()

    def stop(self) -> None:
        self._stopped.set()
        self._paused.clear()

    def wait_while_paused(
        self,
        poll_seconds: float,
        on_pause: Callable[[], None] | None = None,
        on_resume: Callable[[], None] | None = None,
    ) -> bool:
        """Block while paused. Return ``False`` if stopped, ``True`` to continue."""

        if self.stopped:
            return False
        if not self.paused:
            return True
        if on_pause is not None:
            on_pause()
        while self.paused and not self.stopped:
            self._stopped.wait(timeout=poll_seconds)
        if self.stopped:
            return False
        if on_resume is not None:
            on_resume()
        return True

    def sleep(
        self,
        seconds: float,
        *,
        tick_seconds: float,
        poll_seconds: float,
        on_pause: Callable[[], None] | None = None,
        on_resume: Callable[[], None] | None = None,
    ) -> bool:
        """Sleep in ticks, honouring pause and stop between ticks.

        Time spent paused does not count towards ``seconds``. Returns ``False``
        when stopped before the delay elapsed.
        """

        remaining = seconds
        while remaining > 0:
            if not self.wait_while_paused(poll_seconds, on_pause, on_resume):
                return False
            tick = min(tick_seconds, remaining)
            started = time.monotonic()
            if self._stopped.wait(timeout=tick):
                return False
            remaining -= time.monotonic() - started
        return not self.stopped
