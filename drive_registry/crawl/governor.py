"""Cooperative time budget for a single run."""

import time
from typing import Callable


class TimeBudget:
    """Deadline for one run, polled cooperatively by the engines.

    A budget is created once per run and passed explicitly to every loop
    that must poll it; nothing about it is global.
    """

    def __init__(self, budget_seconds: float, clock: Callable[[], float] = time.monotonic):
        """
        Start the budget.

        Args:
            budget_seconds: Allowed run time, kept below the platform's hard ceiling
            clock: Monotonic clock in seconds, replaceable in tests
        """
        if budget_seconds <= 0:
            raise ValueError("budget_seconds must be positive")
        self.budget_seconds = budget_seconds
        self._clock = clock
        self.started_at = clock()

    def elapsed(self) -> float:
        return self._clock() - self.started_at

    def exceeded(self) -> bool:
        """True once the run has used its whole budget. No side effects."""
        return self.elapsed() >= self.budget_seconds

    def remaining(self) -> float:
        return max(0.0, self.budget_seconds - self.elapsed())
