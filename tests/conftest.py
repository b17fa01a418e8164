"""测试公共桩对象：记录型宿主与隔离的配置。"""

from __future__ import annotations

from typing import Any, Callable

import pytest

from agentskills.config import Settings


class RecordingHost:
    """记录全部协作调用的宿主桩。"""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []
        self.continuations = 0
        self.notices: list[tuple[str, str, str, int]] = []
        self.disposed: list[str] = []
        self.message_callbacks: list[Callable[[Any], Any]] = []
        self.prompt_callbacks: list[Callable[[Any], Any]] = []

    def send_message(self, role: str, text: str) -> None:
        self.messages.append((role, text))

    async def continue_generation(self) -> None:
        self.continuations += 1

    def show_notice(self, title: str, subtitle: str, level: str, timeout_ms: int) -> Callable[[], None]:
        self.notices.append((title, subtitle, level, timeout_ms))

        def dispose() -> None:
            self.disposed.append(title)

        return dispose

    def subscribe_messages(self, callback: Callable[[Any], Any]) -> None:
        self.message_callbacks.append(callback)

    def subscribe_prompt_ready(self, callback: Callable[[Any], Any]) -> None:
        self.prompt_callbacks.append(callback)


@pytest.fixture
def host() -> RecordingHost:
    return RecordingHost()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        log_dir=tmp_path / "logs",
        creator_skills_path=tmp_path / "creator-skills.json",
    )
