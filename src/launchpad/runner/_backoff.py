"""Exponential backoff calculator for retried commands and port checks."""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ExponentialBackoff:
    """Exponential backoff calculator.

    The delay formula is:
        delay = base * (multiplier ^ attempt)

    Attributes:
        base: Base delay in seconds for first retry.
        multiplier: Factor to multiply delay for each attempt.
    """

    base: float = 1.0
    multiplier: float = 2.0

    def delay(self, attempt: int) -> float:
        """Calculate the delay for a given attempt number.

        Args:
            attempt: The attempt number (0-indexed, where 0 is the first retry).

        Returns:
            The delay in seconds before the next retry attempt.
        """
        return self.base * (self.multiplier**attempt)

    def total(self, attempts: int) -> float:
        """Return the summed delay of the first ``attempts`` retries."""
        return sum(self.delay(i) for i in range(attempts))
