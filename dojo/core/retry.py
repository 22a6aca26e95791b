"""Bounded retry policy for the generate-and-parse loop."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable

from dojo.core.config import Settings, settings


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed number of attempts with a fixed pause before every retry.

    No jitter and no cancellation; an issued attempt always runs to completion.
    """

    max_attempts: int = 3
    backoff_seconds: float = 1.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)

    def attempts(self) -> range:
        return range(1, self.max_attempts + 1)

    def delay_before(self, attempt: int) -> float:
        if attempt <= 1:
            return 0.0
        return self.backoff_seconds

    def wait_before(self, attempt: int) -> None:
        delay = self.delay_before(attempt)
        if delay > 0:
            self.sleep(delay)

    @classmethod
    def from_settings(cls, settings_obj: Settings | None = None) -> "RetryPolicy":
        cfg = settings_obj or settings
        return cls(
            max_attempts=max(1, cfg.GENERATION_MAX_ATTEMPTS),
            backoff_seconds=max(0.0, cfg.GENERATION_BACKOFF_SECONDS),
        )
