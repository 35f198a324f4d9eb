"""
LinkedIn request pacing and backoff.

Provides the randomized inter-request delay and the 429 backoff schedule used
by the client to avoid rate limiting and suspicious behavior detection.
"""
import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, Optional, Tuple

logger = logging.getLogger(__name__)

# Default delay range in milliseconds between consecutive requests
DEFAULT_MIN_DELAY_MS = 2000
DEFAULT_MAX_DELAY_MS = 5000

# Fast mode range, used with adaptive pacing
FAST_DELAY_MIN_MS = 200
FAST_DELAY_MAX_MS = 600

# 429 handling
BACKOFF_BASE_SECONDS = 5.0
MAX_RETRIES = 5

SleepFunc = Callable[[float], Awaitable[None]]


def backoff_seconds(attempt: int) -> float:
    """Backoff before retry number `attempt` (0-based): 5s, 10s, 20s, ..."""
    return BACKOFF_BASE_SECONDS * (2 ** attempt)


def validate_delay_range(min_ms: int, max_ms: int) -> Tuple[int, int]:
    """
    Raises:
        ValueError: If min_ms > max_ms or if delays are negative
    """
    if min_ms < 0 or max_ms < 0:
        raise ValueError(f"Delays must be non-negative (min={min_ms}, max={max_ms})")
    if min_ms > max_ms:
        raise ValueError(f"min delay ({min_ms}ms) cannot be greater than max delay ({max_ms}ms)")
    return min_ms, max_ms


class RequestPacer:
    """
    Keeps consecutive requests at least a random target delay apart.

    The first request is never delayed. Before every later request a target
    delay is drawn from the active range, and only the part of it that has not
    already elapsed since the previous request is slept.

    With adaptive pacing the pacer starts in the supplied (usually fast) range
    and switches permanently to the default slow range after the first 429.
    """

    def __init__(
        self,
        min_delay_ms: Optional[int] = None,
        max_delay_ms: Optional[int] = None,
        adaptive: bool = False,
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        min_ms = DEFAULT_MIN_DELAY_MS if min_delay_ms is None else min_delay_ms
        max_ms = DEFAULT_MAX_DELAY_MS if max_delay_ms is None else max_delay_ms
        self.min_delay_ms, self.max_delay_ms = validate_delay_range(min_ms, max_ms)
        self.adaptive = adaptive
        self._sleep = sleep
        self._clock = clock
        self._last_request_at: Optional[float] = None

    def draw_target_ms(self) -> float:
        return random.uniform(self.min_delay_ms, self.max_delay_ms)

    async def wait(self, operation_name: str = "request") -> float:
        """
        Sleep as needed before the next request and record its start time.

        Returns:
            The delay actually slept, in seconds
        """
        slept = 0.0
        if self._last_request_at is not None:
            target = self.draw_target_ms() / 1000.0
            elapsed = self._clock() - self._last_request_at
            remaining = target - elapsed
            if remaining > 0:
                logger.debug(
                    f"[{operation_name}] Applying rate limit delay: {remaining:.2f}s "
                    f"(range: {self.min_delay_ms}-{self.max_delay_ms}ms)"
                )
                await self._sleep(remaining)
                slept = remaining
        self._last_request_at = self._clock()
        return slept

    def on_rate_limited(self) -> None:
        """Fall back to the default slow range once LinkedIn pushes back."""
        if not self.adaptive:
            return
        if (self.min_delay_ms, self.max_delay_ms) != (DEFAULT_MIN_DELAY_MS, DEFAULT_MAX_DELAY_MS):
            logger.warning(
                f"[PACING] Rate limited in fast mode, switching to "
                f"{DEFAULT_MIN_DELAY_MS}-{DEFAULT_MAX_DELAY_MS}ms delays"
            )
        self.min_delay_ms = DEFAULT_MIN_DELAY_MS
        self.max_delay_ms = DEFAULT_MAX_DELAY_MS
