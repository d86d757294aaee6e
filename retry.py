"""Bounded retry with exponential backoff and GPU-quota aware waits"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from errors import QuotaExceededError

logger = logging.getLogger("MCP_Server")

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY = 1.0
QUOTA_SAFETY_BUFFER = 1.0

# Hugging Face ZeroGPU: "You have exceeded your GPU quota (...). Please retry in 0:01:30"
QUOTA_RETRY_PATTERN = re.compile(r"retry in (\d+(?::\d+){0,2})", re.IGNORECASE)

RetryCallback = Callable[[BaseException, int, float, bool], Awaitable[None]]


def compute_quota_wait(message: str) -> Optional[float]:
    """Seconds to wait for a quota error message, or None if it is not one.

    The duration is ``H:MM:SS``; missing leading groups count as zero, so
    ``1:30`` is ninety seconds. One second of buffer is added.
    """
    match = QUOTA_RETRY_PATTERN.search(message or "")
    if not match:
        return None
    parts = [int(p) for p in match.group(1).split(":")]
    hours, minutes, seconds = ([0, 0, 0] + parts)[-3:]
    return float(hours * 3600 + minutes * 60 + seconds) + QUOTA_SAFETY_BUFFER


@dataclass(frozen=True)
class RetryDecision:
    wait: float
    is_quota: bool


class ResilientInvoker:
    """Runs a single remote call with a hard ceiling on attempts.

    Quota failures sleep exactly the parsed wait and leave the backoff delay
    untouched; every other failure sleeps the current delay and doubles it.
    Both kinds draw from the same budget of ``max_retries`` retries.
    """

    def __init__(self, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self._sleep = sleep

    async def invoke(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        on_retry: Optional[RetryCallback] = None,
    ) -> T:
        delay = initial_delay
        last_exc: Optional[BaseException] = None
        for attempt in range(1 + max(0, max_retries)):
            try:
                return await operation()
            except Exception as exc:
                last_exc = exc
                if attempt >= max_retries:
                    break
                decision = self.decide(exc, delay)
                if decision.is_quota:
                    logger.warning(
                        "GPU quota exceeded, waiting %.0fs before retry %d/%d",
                        decision.wait, attempt + 1, max_retries,
                    )
                else:
                    delay *= 2
                    logger.warning(
                        "Retry %d/%d after %.1fs - %s: %s",
                        attempt + 1, max_retries, decision.wait, type(exc).__name__, exc,
                    )
                if on_retry is not None:
                    await on_retry(exc, attempt + 1, decision.wait, decision.is_quota)
                await self._sleep(decision.wait)
        logger.error("Giving up after %d attempts: %s", max_retries + 1, last_exc)
        raise last_exc  # type: ignore[misc]

    @staticmethod
    def decide(exc: BaseException, delay: float) -> RetryDecision:
        if isinstance(exc, QuotaExceededError):
            return RetryDecision(wait=exc.wait_seconds, is_quota=True)
        quota_wait = compute_quota_wait(str(exc))
        if quota_wait is not None:
            return RetryDecision(wait=quota_wait, is_quota=True)
        return RetryDecision(wait=delay, is_quota=False)
