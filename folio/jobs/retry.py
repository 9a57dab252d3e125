"""Exponential backoff schedule for queued jobs."""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass, field

from folio.config import Settings


@dataclass(frozen=True)
class RetryPolicy:
  """Delay before attempt n+1 is min(max_delay, base * 2**(n-1)) plus up to 10% jitter."""

  max_attempts: int = 5
  base_delay: float = 2.0
  max_delay: float = 300.0
  jitter: float = 0.1
  rng: Callable[[], float] = field(default=random.random, compare=False, repr=False)

  def should_retry(self, attempt: int) -> bool:
    return attempt < self.max_attempts

  def delay_for(self, attempt: int) -> float:
    exponent = max(attempt - 1, 0)
    delay = min(self.max_delay, self.base_delay * (2**exponent))
    return delay + delay * self.jitter * self.rng()

  @classmethod
  def from_settings(cls, settings: Settings) -> RetryPolicy:
    return cls(max_attempts=settings.job_max_attempts, base_delay=settings.job_backoff_base_seconds, max_delay=settings.job_backoff_max_seconds)
