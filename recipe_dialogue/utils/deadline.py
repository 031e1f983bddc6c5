"""
Per-query time budget shared by every awaited provider call.
"""

import asyncio
import time
from typing import Any, Awaitable, Optional

from .error_handling import ProviderTimeout


class Deadline:
    """
    Absolute expiry point for one query.

    Each provider call made on behalf of the query is bounded by the time
    that remains, so a slow provider cannot push the query past its budget.
    """

    def __init__(self, seconds: float):
        self.seconds = seconds
        self.expires_at = time.monotonic() + seconds

    @property
    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at

    async def run(self, awaitable: Awaitable[Any]) -> Any:
        """
        Await ``awaitable`` within the remaining budget.

        Raises:
            ProviderTimeout: If the budget is already spent or runs out
        """
        remaining = self.remaining
        if remaining <= 0:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise ProviderTimeout("Query deadline exceeded", timeout_seconds=self.seconds)
        try:
            return await asyncio.wait_for(awaitable, timeout=remaining)
        except asyncio.TimeoutError:
            raise ProviderTimeout("Query deadline exceeded", timeout_seconds=self.seconds)


async def run_within(awaitable: Awaitable[Any], deadline: Optional[Deadline] = None) -> Any:
    """Await ``awaitable``, bounded by ``deadline`` when one is given."""
    if deadline is None:
        return await awaitable
    return await deadline.run(awaitable)
