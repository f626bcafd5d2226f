from __future__ import annotations

from abc import ABC, abstractmethod


class ClockPort(ABC):
    """Port for time-related operations.

    Why (SAM): Deadlines and latency metrics need testable time.
    Infrastructure provides the concrete implementation (SystemClock).
    """

    @abstractmethod
    def monotonic(self) -> float:
        """Return a monotonic timestamp in seconds."""
        ...

    @abstractmethod
    def now(self) -> float:
        """Return current wall-clock time as a UNIX timestamp."""
        ...
