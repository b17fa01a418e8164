"""死循环熔断器：滑动时间窗口内统计全部技能调用次数并给出放行决策。"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from agentskills.config import DEFAULT_BREAKER_MAX_CALLS, DEFAULT_BREAKER_WINDOW_MS

logger = logging.getLogger(__name__)


def monotonic_ms() -> float:
    return time.monotonic() * 1000


@dataclass(slots=True)
class BreakerDecision:
    """熔断决策结果，包含是否放行与窗口内调用次数。"""
    allowed: bool
    count: int


class CircuitBreaker:
    """全局熔断器，与具体技能无关；旧时间戳随窗口滑动自然过期。"""

    def __init__(
        self,
        window_ms: int = DEFAULT_BREAKER_WINDOW_MS,
        max_calls: int = DEFAULT_BREAKER_MAX_CALLS,
        clock: Callable[[], float] = monotonic_ms,
    ) -> None:
        self._window_ms = window_ms
        self._max_calls = max_calls
        self._clock = clock
        self._timestamps: deque[float] = deque()

    @property
    def window_ms(self) -> int:
        return self._window_ms

    @property
    def max_calls(self) -> int:
        return self._max_calls

    def record_and_check(self) -> BreakerDecision:
        """记录本次调用、清理过期时间戳，次数严格大于阈值时拒绝。"""
        now = self._clock()
        self._timestamps.append(now)
        while self._timestamps and now - self._timestamps[0] > self._window_ms:
            self._timestamps.popleft()
        count = len(self._timestamps)
        allowed = count <= self._max_calls
        if not allowed:
            logger.warning(
                "circuit breaker tripped",
                extra={
                    "event": "breaker.tripped",
                    "count": count,
                    "payload_preview": {"window_ms": self._window_ms, "max_calls": self._max_calls},
                },
            )
        return BreakerDecision(allowed=allowed, count=count)

    def recent_count(self) -> int:
        """返回窗口内的调用次数，不记录新调用。"""
        now = self._clock()
        return sum(1 for ts in self._timestamps if now - ts <= self._window_ms)
