"""聊天后端集成层。

该包下的模块负责：
- 定义传输抽象接口 (base)。
- 维护后端预设 (registry)。
- 提供 httpx 实现 (http_client)。
"""

from typing import Optional

from chat_core.config.settings import settings
from chat_core.providers.base import StreamingTransport
from chat_core.providers.http_client import HttpxTransport
from chat_core.providers.registry import get_backend_config


def create_transport(cfg=None) -> StreamingTransport:
    """根据配置创建传输实例，默认取全局 settings。"""

    cfg = cfg or settings
    return HttpxTransport(timeout=getattr(cfg, "http_timeout", None))


def resolve_endpoint(cfg=None) -> tuple[Optional[str], str]:
    """返回 (接口地址, 模型名)：settings 中的覆盖项优先于预设。"""

    cfg = cfg or settings
    backend = get_backend_config(getattr(cfg, "chat_backend", None) or "deepseek")
    url = getattr(cfg, "chat_api_url", None) or backend.base_url
    model = getattr(cfg, "chat_model", None) or backend.model
    return url, model
