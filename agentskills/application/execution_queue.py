"""串行执行队列：单个 asyncio worker 按到达顺序逐个处理调用请求。"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from agentskills.domain.enums import OutcomeStatus
from agentskills.domain.models import CallOutcome, CallRequest
from agentskills.infra.logging.context import bind_log_context

logger = logging.getLogger(__name__)

CallRunner = Callable[[CallRequest], Awaitable[CallOutcome]]

_Item = tuple[CallRequest, "asyncio.Future[CallOutcome]"]


class ExecutionQueue:
    """单通道调度器：任意时刻至多一个调用在执行，严格 FIFO。

    运行中的技能再次 enqueue 只会追加到队尾；单个请求失败由通道兜底，
    不会中断后续请求。队列不对处理函数施加超时。
    """

    def __init__(self, runner: CallRunner) -> None:
        self._runner = runner
        self._queue: asyncio.Queue[_Item] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def enqueue(self, request: CallRequest) -> asyncio.Future[CallOutcome]:
        """追加请求并返回在其处理完成时结束的 future；需在事件循环内调用。"""
        loop = asyncio.get_running_loop()
        self._ensure_worker(loop)
        assert self._queue is not None
        future: asyncio.Future[CallOutcome] = loop.create_future()
        self._queue.put_nowait((request, future))
        logger.debug(
            "call enqueued",
            extra={
                "event": "call.enqueued",
                "call_id": request.call_id,
                "skill": request.skill_name,
                "payload_preview": {"pending": self._queue.qsize()},
            },
        )
        return future

    async def join(self) -> None:
        """等待通道内全部请求处理完毕。"""
        if self._queue is not None:
            await self._queue.join()

    async def close(self) -> None:
        """停止 worker；未处理的请求不再执行。"""
        worker = self._worker
        self._worker = None
        if worker is None or worker.done():
            return
        worker.cancel()
        try:
            await worker
        except asyncio.CancelledError:
            pass
        queue = self._queue
        while queue is not None and not queue.empty():
            _request, future = queue.get_nowait()
            future.cancel()
            queue.task_done()

    def _ensure_worker(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._loop is not loop:
            # 事件循环更换后旧队列与 worker 不可复用。
            self._loop = loop
            self._queue = asyncio.Queue()
            self._worker = None
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._drain(), name="agentskills-execution-queue")

    async def _drain(self) -> None:
        queue = self._queue
        assert queue is not None
        while True:
            request, future = await queue.get()
            try:
                outcome = await self._run_isolated(request)
            except asyncio.CancelledError:
                future.cancel()
                raise
            else:
                if not future.done():
                    future.set_result(outcome)
            finally:
                queue.task_done()

    async def _run_isolated(self, request: CallRequest) -> CallOutcome:
        with bind_log_context(call_id=request.call_id, skill=request.skill_name):
            try:
                return await self._runner(request)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                # 兜底：引擎自身出错也不能让通道断掉。
                logger.exception(
                    "engine failure",
                    extra={"event": "call.engine.failed", "error_type": type(exc).__name__, "error": str(exc)},
                )
                return CallOutcome(
                    call_id=request.call_id,
                    skill_name=request.skill_name,
                    status=OutcomeStatus.engine_error,
                    error_type=type(exc).__name__,
                    error_message=str(exc),
                )
