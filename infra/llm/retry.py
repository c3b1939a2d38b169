import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

from app.settings import settings
from domain.errors import NON_RETRYABLE, ErrorCategory

logger = logging.getLogger(__name__)

T = TypeVar("T")

# checked in order, first hit wins
_KEYWORDS = [
    ("quota", ErrorCategory.QUOTA_EXCEEDED),
    ("rate limit", ErrorCategory.RATE_LIMIT),
    ("timeout", ErrorCategory.TIMEOUT),
    ("parse", ErrorCategory.PARSE_ERROR),
    ("network", ErrorCategory.NETWORK),
]


def classify_error(exc: BaseException) -> ErrorCategory:
    category = getattr(exc, "category", None)
    if isinstance(category, ErrorCategory):
        return category
    msg = str(exc).lower()
    for keyword, cat in _KEYWORDS:
        if keyword in msg:
            return cat
    return ErrorCategory.UNKNOWN


def is_retryable(category: ErrorCategory) -> bool:
    return category not in NON_RETRYABLE


@dataclass
class RetryOutcome(Generic[T]):
    value: T
    attempts: List[Dict[str, Any]] = field(default_factory=list)


class RetryExecutor:
    """Runs one remote call with bounded attempts and jittered exponential backoff."""

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        base_delay_ms: Optional[int] = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        jitter: Callable[[float, float], float] = random.uniform,
    ):
        self.max_attempts = max(1, max_attempts if max_attempts is not None else settings.AI_RETRY_ATTEMPTS)
        self.base_delay_ms = base_delay_ms if base_delay_ms is not None else settings.AI_RETRY_BASE_DELAY_MS
        self._sleep = sleep
        self._jitter = jitter

    def backoff_ms(self, attempt: int) -> float:
        return self.base_delay_ms * (2 ** (attempt - 1)) * self._jitter(0.85, 1.15)

    async def execute(self, kind: str, operation: Callable[[], Awaitable[T]]) -> RetryOutcome[T]:
        attempts: List[Dict[str, Any]] = []
        for attempt in range(1, self.max_attempts + 1):
            start = time.perf_counter()
            try:
                value = await operation()
            except Exception as exc:
                duration_ms = round((time.perf_counter() - start) * 1000)
                category = classify_error(exc)
                attempts.append({
                    "attempt": attempt,
                    "error": str(exc),
                    "type": category.value,
                    "duration_ms": duration_ms,
                })
                logger.warning("[%s] attempt %d failed (%s): %s", kind, attempt, category.value, exc)
                if not is_retryable(category) or attempt >= self.max_attempts:
                    if not is_retryable(category):
                        logger.warning("[%s] non-retryable error type=%s, aborting retries", kind, category.value)
                    exc.attempts = attempts
                    raise
                delay_ms = self.backoff_ms(attempt)
                logger.info("[%s] waiting %dms before retry", kind, delay_ms)
                await self._sleep(delay_ms / 1000.0)
                continue
            duration_ms = round((time.perf_counter() - start) * 1000)
            attempts.append({"attempt": attempt, "duration_ms": duration_ms})
            logger.debug("[%s] attempt %d succeeded in %dms", kind, attempt, duration_ms)
            return RetryOutcome(value=value, attempts=attempts)
        raise RuntimeError("Unexpected retry exhaustion")
