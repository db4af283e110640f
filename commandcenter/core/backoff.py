"""Failure backoff: a timed open/closed breaker with no half-open probing."""
import time
from dataclasses import dataclass

from commandcenter.core.cache import Clock


@dataclass
class BackoffState:
    failed: bool = False
    failed_at: float = 0.0
    cooldown: float = 120.0


class FailureBackoff:
    """Suppress attempts for ``cooldown`` seconds after a classified failure."""

    def __init__(self, cooldown: float = 120.0, clock: Clock = time.monotonic):
        self._clock = clock
        self.state = BackoffState(cooldown=cooldown)
        self._default_cooldown = cooldown

    def should_attempt(self) -> bool:
        if not self.state.failed:
            return True
        return self._clock() - self.state.failed_at >= self.state.cooldown

    def record_failure(self, cooldown: float | None = None) -> None:
        """Open the breaker; a repeat failure restarts the cooldown."""
        self.state.failed = True
        self.state.failed_at = self._clock()
        self.state.cooldown = self._default_cooldown if cooldown is None else cooldown

    def record_success(self) -> None:
        self.state.failed = False

    def remaining(self) -> float:
        """Seconds left in the cooldown (0 when closed)."""
        if not self.state.failed:
            return 0.0
        return max(0.0, self.state.cooldown - (self._clock() - self.state.failed_at))
