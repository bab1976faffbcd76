"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置，优先级依次降低。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_GREETING = "你好！我是AI助手，有什么可以帮助您的吗？"


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("CHAT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
        Path(__file__).resolve().parents[1] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- 后端相关配置 ----
    chat_backend: str = Field(
        default="deepseek",
        description="后端预设名称，由 registry 映射为具体 URL 与模型",
    )
    chat_api_url: Optional[str] = Field(
        default=None,
        description="聊天接口地址，设置后覆盖预设 URL",
    )
    chat_api_token: Optional[str] = Field(default=None, description="Bearer 凭证")
    chat_model: Optional[str] = Field(default=None, description="模型名，设置后覆盖预设模型")
    require_token: bool = Field(
        default=True,
        description="未配置凭证时是否拒绝发送请求",
    )
    # None 表示不设置超时，挂起的连接只能通过取消结束
    http_timeout: Optional[float] = Field(default=None, ge=1.0, description="HTTP 超时时间（秒）")

    # ---- 会话与日志 ----
    greeting: str = Field(default=DEFAULT_GREETING, description="会话初始问候语")
    log_dir: str = Field(default="logs", description="日志目录")
    log_file: str = Field(default="chat.log", description="日志文件名")
    log_level: str = Field(default="INFO", description="日志级别，如 DEBUG、INFO")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("chat_api_url", "chat_api_token", "chat_model", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
