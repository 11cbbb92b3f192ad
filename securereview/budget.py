"""Wall-clock budget shared by every stage that talks to the network."""

import time
from dataclasses import dataclass


class TimeBudgetExceeded(RuntimeError):
    """Raised when a stage tries to start new work past the review deadline."""
    pass


@dataclass(frozen=True)
class ReviewBudget:
    """Immutable deadline computed once at startup.

    Callers invoke check() right before issuing a network call. A call that
    is already in flight is never interrupted.
    """

    deadline: float
    seconds: float = 0.0

    @classmethod
    def start(cls, seconds: float) -> "ReviewBudget":
        return cls(deadline=time.monotonic() + seconds, seconds=seconds)

    def remaining(self) -> float:
        return max(0.0, self.deadline - time.monotonic())

    def expired(self) -> bool:
        return time.monotonic() > self.deadline

    def check(self) -> None:
        if self.expired():
            raise TimeBudgetExceeded(f"Time budget of {self.seconds:g}s exceeded")
