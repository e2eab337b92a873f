"""
Requeue Policy - When a SyncState should be reconciled again.
"""

from dataclasses import dataclass
from typing import Optional

from ...core.ports import EngineConfig, RateLimitError


@dataclass
class RequeuePolicy:
    """
    Success: a long confirmatory interval.
    Error: bounded exponential backoff ``min(base * 2**n, max)`` where ``n``
    is the number of consecutive failures before this one.
    """

    success_seconds: float = 600.0
    error_base_seconds: float = 10.0
    error_max_seconds: float = 300.0

    @classmethod
    def from_config(cls, config: EngineConfig) -> "RequeuePolicy":
        return cls(
            success_seconds=config.success_requeue_seconds,
            error_base_seconds=config.error_requeue_base_seconds,
            error_max_seconds=config.error_requeue_max_seconds,
        )

    def after_success(self) -> float:
        return self.success_seconds

    def after_error(self, failure_count: int, error: Optional[Exception] = None) -> float:
        """
        Backoff for the ``failure_count``-th consecutive failure (1-based).

        A rate-limit error with a Retry-After hint is never retried sooner
        than the hint.
        """
        exponent = max(failure_count - 1, 0)
        # Cap the exponent so 2**n stays small for long failure streaks
        delay = min(self.error_base_seconds * 2 ** min(exponent, 32), self.error_max_seconds)
        if isinstance(error, RateLimitError) and error.retry_after:
            delay = max(delay, error.retry_after)
        return delay
