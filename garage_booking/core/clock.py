"""Time source used by reminder scheduling."""

from datetime import datetime
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Naive local wall-clock time; appointments carry no timezone."""

    def now(self) -> datetime:
        return datetime.now()


system_clock = SystemClock()
