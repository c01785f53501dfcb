from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable

from .health import probe


@dataclass(frozen=True)
class ReadinessOutcome:
    ready: bool
    attempts: int
    max_attempts: int


def max_attempts(timeout_s: float, interval_s: float) -> int:
    if interval_s <= 0:
        raise ValueError("poll interval must be positive")
    return max(1, math.ceil(timeout_s / interval_s))


def wait_until_ready(
        url: str,
        *,
        timeout_s: float,
        interval_s: float,
        probe_fn: Callable[[str], bool] = probe,
        sleep: Callable[[float], None] = time.sleep,
        on_attempt: Callable[[int, bool], None] | None = None,
) -> ReadinessOutcome:
    limit = max_attempts(timeout_s, interval_s)
    for attempt in range(1, limit + 1):
        healthy = probe_fn(url)
        if on_attempt:
            on_attempt(attempt, healthy)
        if healthy:
            return ReadinessOutcome(ready=True, attempts=attempt, max_attempts=limit)
        if attempt < limit:
            sleep(interval_s)
    return ReadinessOutcome(ready=False, attempts=limit, max_attempts=limit)
