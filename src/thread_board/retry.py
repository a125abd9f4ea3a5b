from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded polling used to wait for a freshly written blob to become visible.

    `backoff(attempt)` overrides the fixed `delay` when set; `attempt` is the
    1-based number of the attempt that just failed. No sleep follows the last
    attempt.
    """
    max_attempts: int = 3
    delay: float = 3.0
    backoff: Optional[Callable[[int], float]] = None
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.delay < 0:
            raise ValueError("delay must be >= 0")

    def delay_for(self, attempt: int) -> float:
        if self.backoff is not None:
            return max(0.0, self.backoff(attempt))
        return self.delay

    async def until(self, check: Callable[[], Awaitable[bool]], label: str = "check") -> bool:
        for attempt in range(1, self.max_attempts + 1):
            logger.debug("Attempt %d/%d: %s", attempt, self.max_attempts, label)
            if await check():
                return True
            if attempt < self.max_attempts:
                wait = self.delay_for(attempt)
                logger.debug("%s not satisfied, retrying in %.1fs", label, wait)
                await self.sleep(wait)
        return False
