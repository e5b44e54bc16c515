"""Reconnect policy — capped exponential backoff.

Learn: delay = min(base * 2^attempt, max). With the defaults that is
1s, 2s, 4s, 8s, 16s, then 30s forever. The attempt counter lives on the
session, not here; the policy is a pure value object so it can be shared
and tested without an event loop.
"""

from dataclasses import dataclass
from typing import Optional

from pedalsync.config import Settings, settings


@dataclass(frozen=True)
class ReconnectPolicy:
    base_ms: int = 1000
    max_ms: int = 30000
    warn_after: int = 3
    max_attempts: Optional[int] = None  # None = never give up

    @classmethod
    def from_settings(cls, cfg: Settings = settings) -> "ReconnectPolicy":
        return cls(
            base_ms=cfg.backoff_base_ms,
            max_ms=cfg.backoff_max_ms,
            warn_after=cfg.backoff_warn_after,
            max_attempts=cfg.max_reconnect_attempts,
        )

    def delay_ms(self, attempt: int) -> int:
        return backoff_delay_ms(attempt, base_ms=self.base_ms, max_ms=self.max_ms)

    def should_warn(self, attempt: int) -> bool:
        return attempt > self.warn_after

    def exhausted(self, attempt: int) -> bool:
        return self.max_attempts is not None and attempt >= self.max_attempts


def backoff_delay_ms(attempt: int, *, base_ms: int = 1000, max_ms: int = 30000) -> int:
    """Delay before reconnect number `attempt` (0-based), in milliseconds."""
    if attempt < 0:
        raise ValueError("attempt must be >= 0")
    # Past this exponent the product is above any sane cap anyway
    if attempt >= 32:
        return max_ms
    return min(base_ms * (2 ** attempt), max_ms)
