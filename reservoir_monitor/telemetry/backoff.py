"""
Reconnect backoff for the telemetry link.
"""
from dataclasses import dataclass
from typing import List, Optional


@dataclass
class ReconnectPolicy:
    """
    Linear reconnect backoff with a capped attempt counter.

    The n-th consecutive reconnect waits base_delay * n seconds. After
    max_attempts consecutive failures the policy is exhausted.
    """
    base_delay: float = 5.0
    max_attempts: int = 5
    attempts: int = 0

    def __post_init__(self):
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")
        if self.max_attempts < 0:
            raise ValueError("max_attempts must not be negative")

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def reset(self) -> None:
        """Call when a connection opens."""
        self.attempts = 0

    def next_delay(self) -> Optional[float]:
        """
        Count a failure and return the wait before the next attempt.

        Returns:
            Delay in seconds, or None when no attempts are left
        """
        if self.exhausted:
            return None
        self.attempts += 1
        return self.base_delay * self.attempts

    def schedule(self) -> List[float]:
        """All delays a fresh policy would produce."""
        return [self.base_delay * n for n in range(1, self.max_attempts + 1)]
