"""
Bounded exponential backoff used when reopening the shared port.
"""

from typing import Iterator


class BackoffPolicy:
    """Exponential backoff with a cap on delay and on the number of attempts."""

    def __init__(
        self,
        initial_delay: float = 0.5,
        max_delay: float = 10.0,
        multiplier: float = 1.5,
        max_attempts: int = 5,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.multiplier = multiplier
        self.max_attempts = max_attempts

    @classmethod
    def from_config(cls, cfg) -> "BackoffPolicy":
        return cls(
            initial_delay=cfg.initial_delay,
            max_delay=cfg.max_delay,
            multiplier=cfg.multiplier,
            max_attempts=cfg.max_attempts,
        )

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate the delay before a reopen attempt.

        Args:
            attempt: 1-based attempt number

        Returns:
            Delay in seconds
        """
        delay = self.initial_delay * (self.multiplier ** (attempt - 1))
        return min(delay, self.max_delay)

    def delays(self) -> Iterator[float]:
        for attempt in range(1, self.max_attempts + 1):
            yield self.calculate_delay(attempt)

    def __repr__(self) -> str:
        return (
            f"BackoffPolicy(initial_delay={self.initial_delay}, max_delay={self.max_delay}, "
            f"multiplier={self.multiplier}, max_attempts={self.max_attempts})"
        )
