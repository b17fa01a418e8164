"""宿主 HTTP 客户端：通过 webhook 投递消息、请求续写与展示瞬时提示。"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from agentskills.domain.errors import HostUnavailableError

logger = logging.getLogger(__name__)


class HostHttpClient:
    """宿主 webhook 异步客户端，方法命名与宿主能力协商约定一致。"""

    def __init__(
        self,
        base_url: str,
        *,
        message_path: str = "/api/messages",
        continue_path: str = "/api/generate",
        notice_path: str = "/api/notices",
        api_token: str | None = None,
        timeout_seconds: int = 15,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._message_path = message_path
        self._continue_path = continue_path
        self._notice_path = notice_path.rstrip("/")
        self._closed = False
        headers = {"Authorization": f"Bearer {api_token}"} if api_token else None
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers=headers,
            transport=transport,
        )

    def _client_or_raise(self) -> httpx.AsyncClient:
        """返回可用客户端；若已关闭则抛出异常。"""
        if self._closed:
            raise HostUnavailableError("HostHttpClient is already closed")
        return self._client

    async def close(self) -> None:
        """关闭底层 HTTP 客户端连接池。"""
        if self._closed:
            return
        await self._client.aclose()
        self._closed = True

    async def _request(
        self,
        *,
        method: str,
        path: str,
        op: str,
        json_body: dict[str, Any] | None = None,
        payload_preview: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """发送 HTTP 请求并记录结构化日志，失败统一转换为 HostUnavailableError。"""
        started = time.perf_counter()
        try:
            response = await self._client_or_raise().request(method, path, json=json_body)
            response.raise_for_status()
        except HostUnavailableError:
            raise
        except Exception as exc:
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            status_code = None
            if isinstance(exc, httpx.HTTPStatusError) and exc.response is not None:
                status_code = exc.response.status_code
            logger.error(
                "host request failed",
                extra={
                    "event": "host.request.failed",
                    "external_service": "host",
                    "op": op,
                    "duration_ms": duration_ms,
                    "status_code": status_code,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                    "payload_preview": payload_preview,
                },
            )
            raise HostUnavailableError(f"{op} failed: {exc}") from exc
        logger.debug(
            "host request completed",
            extra={
                "event": "host.request.completed",
                "external_service": "host",
                "op": op,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "status_code": response.status_code,
            },
        )
        return response

    async def send_message(self, role: str, text: str) -> None:
        """向宿主对话记录追加一条带角色的消息。"""
        await self._request(
            method="POST",
            path=self._message_path,
            op="message.send",
            json_body={"role": role, "content": text},
            payload_preview={"role": role, "chars": len(text)},
        )

    async def continue_generation(self) -> None:
        """请求宿主继续生成。"""
        await self._request(method="POST", path=self._continue_path, op="generation.continue", json_body={})

    async def show_notice(
        self,
        title: str,
        subtitle: str = "",
        level: str = "info",
        timeout_ms: int = 1800,
    ) -> Callable[[], Awaitable[None]] | None:
        """展示瞬时提示；宿主返回 id 时提供对应的关闭函数。"""
        response = await self._request(
            method="POST",
            path=self._notice_path,
            op="notice.show",
            json_body={"title": title, "subtitle": subtitle, "level": level, "timeout_ms": timeout_ms},
            payload_preview={"title": title, "level": level},
        )
        notice_id = self._notice_id(response)
        if not notice_id:
            return None

        async def dispose() -> None:
            await self._request(method="DELETE", path=f"{self._notice_path}/{notice_id}", op="notice.dispose")

        return dispose

    @staticmethod
    def _notice_id(response: httpx.Response) -> str | None:
        try:
            payload = response.json()
        except ValueError:
            return None
        if isinstance(payload, dict) and payload.get("id") is not None:
            return str(payload["id"])
        return None
