"""Run time budget for jobs that iterate over records."""

import time
from typing import Optional


class RunBudget:
    """Wall-clock budget checked between records.

    A run that finds its budget expired stops after the record it is
    processing; the next scheduled run picks up the remainder.
    """

    def __init__(self, seconds: Optional[float] = None, clock=time.monotonic):
        self.seconds = seconds
        self._clock = clock
        self._started = clock()

    @classmethod
    def unlimited(cls) -> "RunBudget":
        return cls(None)

    def elapsed(self) -> float:
        return self._clock() - self._started

    def expired(self) -> bool:
        return self.seconds is not None and self.elapsed() >= self.seconds
