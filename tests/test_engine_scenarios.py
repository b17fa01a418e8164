"""引擎端到端场景测试：成功续写、未注册、熔断、故障隔离与宿主订阅。"""

import asyncio

from agentskills.application.engine import CallProtocolEngine
from agentskills.domain.enums import OutcomeStatus
from agentskills.domain.models import SkillContext
from agentskills.infra.host.capabilities import HostCapabilities


def _engine(settings, host) -> CallProtocolEngine:
    return CallProtocolEngine(settings=settings, capabilities=HostCapabilities.negotiate(host))


def _hello(ctx: SkillContext) -> str:
    return f"Hello, {ctx.args['name']}!"


def test_successful_call_delivers_result_and_continues(settings, host) -> None:
    """成功调用：投递一条结果消息、请求一次续写，并清除执行提示。"""
    engine = _engine(settings, host)
    engine.register({"name": "hello", "description": "greets", "action": _hello})

    async def scenario():
        future = engine.handle_message('Let me greet. [CALL: hello({"name":"Ann"})]')
        outcome = await future
        await engine.close()
        return outcome

    outcome = asyncio.run(scenario())
    assert outcome.status is OutcomeStatus.succeeded
    assert outcome.payload == "Hello, Ann!"
    assert outcome.continued is True
    assert host.messages == [("system", "Skill result: hello\n---\nHello, Ann!")]
    assert host.continuations == 1
    assert host.notices == [("Skill executing…", "hello", "info", 0)]
    assert host.disposed == ["Skill executing…"]


def test_unknown_skill_reports_not_found_without_continuation(settings, host) -> None:
    engine = _engine(settings, host)

    async def scenario():
        outcome = await engine.handle_message("[CALL: ghost()]")
        await engine.close()
        return outcome

    outcome = asyncio.run(scenario())
    assert outcome.status is OutcomeStatus.not_found
    assert host.messages == [("system", 'Skill call failed: "ghost" is not registered or not enabled.')]
    assert host.continuations == 0
    assert host.notices == [("Skill not found", "ghost", "error", 2400)]


def test_disabled_skill_is_treated_as_missing(settings, host) -> None:
    engine = _engine(settings, host)
    engine.register({"name": "off", "enabled": False, "action": lambda ctx: "never"})

    async def scenario():
        outcome = await engine.handle_message("[CALL: off]")
        await engine.close()
        return outcome

    outcome = asyncio.run(scenario())
    assert outcome.status is OutcomeStatus.disabled
    assert host.messages[0][1] == 'Skill call failed: "off" is not registered or not enabled.'
    assert host.continuations == 0


def test_sixth_rapid_call_trips_the_breaker(settings, host) -> None:
    """30 秒内连续 6 次调用：前 5 次成功，第 6 次被熔断且不续写。"""
    engine = _engine(settings, host)
    engine.register({"name": "ping", "action": lambda ctx: "pong"})

    async def scenario():
        futures = [engine.handle_message("[CALL: ping]") for _ in range(6)]
        outcomes = await asyncio.gather(*futures)
        await engine.close()
        return outcomes

    outcomes = asyncio.run(scenario())
    assert [item.status for item in outcomes] == [OutcomeStatus.succeeded] * 5 + [OutcomeStatus.breaker_tripped]
    assert host.continuations == 5
    assert host.messages[-1] == (
        "system",
        "agentskills: Circuit breaker triggered. The model called skills too frequently "
        "(6 calls within 30s). Further calls are blocked to prevent infinite loops.",
    )
    assert ("Skill loop detected", "Blocked after 5 calls / 30s", "error", 4200) in host.notices


def test_handler_fault_is_isolated_from_later_calls(settings, host) -> None:
    """处理函数抛异常：投递失败消息、不续写；后续调用不受影响。"""
    engine = _engine(settings, host)

    def broken(ctx: SkillContext) -> str:
        raise RuntimeError("kaput")

    engine.register({"name": "broken", "action": broken})
    engine.register({"name": "hello", "action": _hello})

    async def scenario():
        failed = engine.handle_message("[CALL: broken]")
        succeeded = engine.handle_message("[CALL: hello(name=Bo)]")
        result = (await failed, await succeeded)
        await engine.close()
        return result

    failed, succeeded = asyncio.run(scenario())
    assert failed.status is OutcomeStatus.failed
    assert failed.error_type == "RuntimeError"
    assert failed.continued is False
    role, text = host.messages[0]
    assert role == "system"
    assert text.startswith("Skill execution failed: broken\n---\nRuntimeError: kaput")
    assert "Traceback" in text
    assert succeeded.status is OutcomeStatus.succeeded
    assert host.messages[1] == ("system", "Skill result: hello\n---\nHello, Bo!")
    assert host.continuations == 1
    # 执行提示在失败路径上同样被清除。
    assert host.disposed.count("Skill executing…") == 2


def test_async_handler_results_are_normalized(settings, host) -> None:
    engine = _engine(settings, host)

    async def structured(ctx: SkillContext) -> dict:
        await asyncio.sleep(0)
        return {"args": ctx.args, "note": "数据"}

    async def nothing(ctx: SkillContext) -> None:
        return None

    engine.register({"name": "structured", "action": structured})
    engine.register({"name": "nothing", "action": nothing})

    async def scenario():
        first = await engine.handle_message("[CALL: structured(just text)]")
        second = await engine.handle_message("[CALL: nothing]")
        await engine.close()
        return first, second

    first, second = asyncio.run(scenario())
    assert first.payload == '{\n  "args": {\n    "_raw": "just text"\n  },\n  "note": "数据"\n}'
    assert second.payload == ""
    assert host.messages[1] == ("system", "Skill result: nothing\n---\n(empty result)")


def test_handler_may_enqueue_another_call(settings, host) -> None:
    """处理函数内部再次触发调用只会排队，不会与自身重叠。"""
    engine = _engine(settings, host)
    order: list[str] = []
    nested = []

    def outer(ctx: SkillContext) -> str:
        order.append("outer:start")
        nested.append(engine.handle_message("[CALL: inner]"))
        order.append("outer:end")
        return "outer done"

    def inner(ctx: SkillContext) -> str:
        order.append("inner")
        return "inner done"

    engine.register({"name": "outer", "action": outer})
    engine.register({"name": "inner", "action": inner})

    async def scenario():
        await engine.handle_message("[CALL: outer]")
        inner_outcome = await nested[0]
        await engine.close()
        return inner_outcome

    inner_outcome = asyncio.run(scenario())
    assert order == ["outer:start", "outer:end", "inner"]
    assert inner_outcome.status is OutcomeStatus.succeeded


def test_engine_without_host_still_runs_skills(settings) -> None:
    """没有宿主协作方时技能照常执行，只是无法投递与续写。"""
    engine = CallProtocolEngine(settings=settings)
    engine.register({"name": "hello", "action": _hello})

    async def scenario():
        outcome = await engine.handle_message("[CALL: hello(name=Cy)]")
        await engine.close()
        return outcome

    outcome = asyncio.run(scenario())
    assert outcome.status is OutcomeStatus.succeeded
    assert outcome.payload == "Hello, Cy!"
    assert outcome.continued is False


def test_message_without_tag_is_ignored(settings, host) -> None:
    engine = _engine(settings, host)
    assert engine.handle_message("no calls here") is None
    assert engine.handle_message({"mes": ""}) is None
    assert host.messages == []


def test_handle_message_outside_event_loop_returns_none(settings, host) -> None:
    """没有运行中的事件循环时入队失败只记录日志。"""
    engine = _engine(settings, host)
    engine.register({"name": "hello", "action": _hello})
    assert engine.handle_message("[CALL: hello(name=Di)]") is None


def test_attach_subscribes_message_and_prompt_hooks(settings, host) -> None:
    engine = CallProtocolEngine(settings=settings)
    engine.register({"name": "hello", "description": "greets", "action": _hello})

    async def scenario():
        capabilities = await engine.attach(host)
        assert capabilities.missing() == []
        on_message = host.message_callbacks[0]
        outcome = await on_message({"mes": "[CALL: hello(name=Ed)]"})
        await engine.close()
        return outcome

    outcome = asyncio.run(scenario())
    assert outcome.payload == "Hello, Ed!"
    assert host.messages == [("system", "Skill result: hello\n---\nHello, Ed!")]

    payload = {"messages": [{"role": "user", "content": "hi"}]}
    assert host.prompt_callbacks[0](payload) is True
    assert payload["messages"][-1]["role"] == "system"
    assert "- hello: greets" in payload["messages"][-1]["content"]


def test_slow_executing_notice_does_not_hold_back_the_skill(settings, host) -> None:
    """宿主提示接口迟迟不返回时，技能照常执行，提示在结束后仍被清除。"""
    release = asyncio.Event()
    shown: list[str] = []
    disposed: list[str] = []

    async def slow_notice(title, subtitle, level, timeout_ms):
        shown.append(subtitle)
        await release.wait()
        return lambda: disposed.append(subtitle)

    host.show_notice = slow_notice
    engine = _engine(settings, host)

    def opens_gate(ctx: SkillContext) -> str:
        release.set()
        return "done"

    engine.register({"name": "gate", "action": opens_gate})

    async def scenario():
        outcome = await asyncio.wait_for(engine.handle_message("[CALL: gate()]"), timeout=5)
        await engine.close()
        return outcome

    outcome = asyncio.run(scenario())
    assert outcome.status is OutcomeStatus.succeeded
    assert shown == ["gate"]
    assert disposed == ["gate"]
    assert host.messages == [("system", "Skill result: gate\n---\ndone")]
