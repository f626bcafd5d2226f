"""System clock adapter.

This is the production implementation of ClockPort.
For tests, inject a fake clock.
"""

from __future__ import annotations

import time

from ...application.ports.clock_port import ClockPort


class SystemClock(ClockPort):
    """Production clock: monotonic for deadlines, wall clock for timestamps."""

    def monotonic(self) -> float:  # pragma: no cover - trivial
        return time.monotonic()

    def now(self) -> float:  # pragma: no cover - trivial
        return time.time()
