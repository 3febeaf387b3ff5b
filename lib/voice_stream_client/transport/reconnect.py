"""
Reconnection policy: exponential backoff with jitter and an attempt budget.

    attempt 1 → 1s, 2 → 2s, 3 → 4s, ... capped at 30s
    plus jitter uniform(0, 0.5) × delay on top

Jitter is added after the cap, so a capped delay can run up to 45s.
"""

import random
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class ReconnectPolicy:
    """Backoff parameters."""
    max_attempts: int = 10
    base_delay: float = 1.0   # seconds
    max_delay: float = 30.0   # seconds, cap on the deterministic term
    jitter_ratio: float = 0.5  # jitter ∈ [0, jitter_ratio] × delay

    def base_delay_for(self, attempt: int) -> float:
        """
        Deterministic delay before the given attempt (1-based).

        Args:
            attempt: Retry number, starting at 1

        Returns:
            min(base_delay * 2^(attempt-1), max_delay)
        """
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")
        return min(self.base_delay * (2.0 ** (attempt - 1)), self.max_delay)

    def delay_for(self, attempt: int, rng: Optional[random.Random] = None) -> float:
        """Delay before the given attempt, jitter included."""
        delay = self.base_delay_for(attempt)
        jitter = (rng or random).uniform(0.0, self.jitter_ratio) * delay
        return delay + jitter


@dataclass
class ReconnectContext:
    """
    Mutable retry bookkeeping for one controller.

    `should_reconnect` turns False on stop() or when the budget runs out and
    stays False until the next start().
    """
    policy: ReconnectPolicy = field(default_factory=ReconnectPolicy)
    attempts: int = 0
    should_reconnect: bool = False

    @property
    def max_attempts(self) -> int:
        return self.policy.max_attempts

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.policy.max_attempts

    def reset(self) -> None:
        """Called on every successful connection."""
        self.attempts = 0

    def next_delay(self, rng: Optional[random.Random] = None) -> float:
        """Count one more attempt and return its delay."""
        self.attempts += 1
        return self.policy.delay_for(self.attempts, rng)
