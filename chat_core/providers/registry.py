"""后端预设配置。

本模块将“预设名”与“具体接口地址、模型名”解耦：

- 预设名（name）：配置里使用的统一名称，例如 "deepseek"。
- base_url / model：实际请求的地址与模型 ID。

上层只关心预设名，具体请求哪个地址由这里集中配置，settings 中的
chat_api_url / chat_model 可以逐项覆盖。"""

from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass
class BackendConfig:
    """单个聊天后端的预设。"""

    name: str
    base_url: Optional[str]
    model: str


# 默认的 DeepSeek 兼容代理（Cloudflare Worker 转发）
DEEPSEEK_CONFIG = BackendConfig(
    name="deepseek",
    base_url="https://chat-wrokers.tangw4591.workers.dev/deepseek/api",
    model="deepseek-chat",
)

# 自定义后端：地址必须由用户配置
CUSTOM_CONFIG = BackendConfig(
    name="custom",
    base_url=None,
    model="deepseek-chat",
)


BACKEND_REGISTRY: Mapping[str, BackendConfig] = {
    "deepseek": DEEPSEEK_CONFIG,
    "custom": CUSTOM_CONFIG,
}


def get_backend_config(name: str) -> BackendConfig:
    """根据名称获取 BackendConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in BACKEND_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown backend: {name!r}")
