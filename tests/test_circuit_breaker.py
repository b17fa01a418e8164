"""熔断器测试：验证严格大于阈值的边界与滑动窗口过期。"""

from agentskills.infra.security.circuit_breaker import CircuitBreaker


class FakeClock:
    """可手动推进的毫秒时钟。"""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_sixth_call_within_window_is_blocked() -> None:
    """窗口内第 6 次调用被拒绝，前 5 次放行。"""
    clock = FakeClock()
    breaker = CircuitBreaker(window_ms=30_000, max_calls=5, clock=clock)
    decisions = []
    for _ in range(6):
        decisions.append(breaker.record_and_check())
        clock.now += 100
    assert [item.allowed for item in decisions] == [True] * 5 + [False]
    assert decisions[-1].count == 6


def test_window_expiry_allows_calls_again() -> None:
    clock = FakeClock()
    breaker = CircuitBreaker(window_ms=1_000, max_calls=2, clock=clock)
    assert breaker.record_and_check().allowed
    assert breaker.record_and_check().allowed
    assert not breaker.record_and_check().allowed
    clock.now = 1_001
    decision = breaker.record_and_check()
    assert decision.allowed
    assert decision.count == 1


def test_entry_exactly_at_window_edge_still_counts() -> None:
    """时间差恰好等于窗口时仍计入窗口。"""
    clock = FakeClock()
    breaker = CircuitBreaker(window_ms=1_000, max_calls=1, clock=clock)
    breaker.record_and_check()
    clock.now = 1_000
    decision = breaker.record_and_check()
    assert decision.count == 2
    assert not decision.allowed


def test_blocked_calls_are_recorded() -> None:
    """被拒绝的调用同样写入窗口，持续刷屏会一直被拦截。"""
    clock = FakeClock()
    breaker = CircuitBreaker(window_ms=1_000, max_calls=1, clock=clock)
    breaker.record_and_check()
    clock.now = 600
    assert not breaker.record_and_check().allowed
    clock.now = 1_200
    decision = breaker.record_and_check()
    assert decision.count == 2
    assert not decision.allowed
    assert breaker.recent_count() == 2
