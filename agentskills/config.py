"""全局配置加载模块：从环境变量构建运行参数并提供缓存访问。"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BREAKER_WINDOW_MS = 30_000
DEFAULT_BREAKER_MAX_CALLS = 5


def _csv_to_list(value: str) -> list[str]:
    """将逗号分隔字符串转换为去空白列表。"""
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """系统运行配置对象，从环境变量读取并提供类型化访问。"""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Agent Skills Engine"
    api_prefix: str = "/api/v1"
    environment: str = "dev"

    # 熔断：窗口内调用次数严格大于 max_calls 时阻断。
    breaker_window_ms: int = DEFAULT_BREAKER_WINDOW_MS
    breaker_max_calls: int = DEFAULT_BREAKER_MAX_CALLS

    message_role: str = "system"
    notice_executing_title: str = "Skill executing…"
    notice_error_timeout_ms: int = 4200
    notice_not_found_timeout_ms: int = 2400
    depth_note_max_skills: int = 24

    creator_skills_path: Path = Field(default=Path("./data/creator-skills.json"))

    # 宿主 webhook；未配置 base_url 时不具备出站能力。
    host_base_url: str | None = None
    host_message_path: str = "/api/messages"
    host_continue_path: str = "/api/generate"
    host_notice_path: str = "/api/notices"
    host_request_timeout_seconds: int = 15
    host_api_token: str | None = None

    log_dir: Path = Field(default=Path("./logs"))
    log_level: str = "INFO"
    log_debug_modules: str = ""
    log_debug_call_ids: str = ""
    log_debug_skills: str = ""
    log_console: bool = False
    log_redaction_mode: str = "standard"
    log_payload_preview_chars: int = 512
    log_max_bytes: int = 10 * 1024 * 1024
    log_backup_count: int = 5

    @field_validator("breaker_window_ms")
    @classmethod
    def _clamp_window(cls, value: int) -> int:
        return value if value > 0 else DEFAULT_BREAKER_WINDOW_MS

    @field_validator("breaker_max_calls")
    @classmethod
    def _clamp_max_calls(cls, value: int) -> int:
        return value if value > 0 else DEFAULT_BREAKER_MAX_CALLS

    def log_debug_modules_list(self) -> list[str]:
        return _csv_to_list(self.log_debug_modules)

    def log_debug_call_ids_list(self) -> list[str]:
        return _csv_to_list(self.log_debug_call_ids)

    def log_debug_skills_list(self) -> list[str]:
        return _csv_to_list(self.log_debug_skills)

    def breaker_window_seconds(self) -> int:
        return self.breaker_window_ms // 1000


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """构建并缓存 Settings，相对路径统一按当前工作目录解析。"""
    settings = Settings()
    if not settings.creator_skills_path.is_absolute():
        settings.creator_skills_path = (Path.cwd() / settings.creator_skills_path).resolve()
    return settings
