"""数据 payload -> 文本增量。

不同后端的流式 JSON 结构不一致，这里按优先级依次探测：

1. OpenAI 兼容格式：``choices[0].delta.content``；
2. DeepSeek 原生格式：顶层 ``content``；
3. 通用格式：顶层 ``text``。

没有命中任何字段的 JSON（例如只有 role 的首个 delta）直接忽略。
不是 JSON 且不以 ``{`` 开头的 payload 按纯文本整体作为增量；
以 ``{`` 开头却解析失败的视为损坏数据，只记日志。
"""

import json
import logging
from typing import Any, Optional

from chat_core.domain.exceptions import ProtocolError
from chat_core.infrastructure.logging.logger import logger


UNKNOWN_ERROR = "发生未知错误"


def normalize_payload(data: str) -> Optional[str]:
    """解析一条数据 payload，返回文本增量；无增量时返回 None。"""

    try:
        parsed = json.loads(data)
    except json.JSONDecodeError as e:
        if data and not data.startswith("{"):
            return data
        err = ProtocolError(code="MALFORMED_PAYLOAD", message=str(e))
        logger.log(
            logging.WARNING,
            "Dropped malformed payload",
            extra={"extra": {"code": err.code, "error": err.message, "payload": data[:200]}},
        )
        return None

    delta = _extract_delta(parsed)
    if delta is None:
        logger.debug("Payload carries no delta", extra={"extra": {"payload": data[:200]}})
    return delta


def _extract_delta(parsed: Any) -> Optional[str]:
    if not isinstance(parsed, dict):
        return None
    candidates = (
        _choices_delta_content(parsed),
        parsed.get("content"),
        parsed.get("text"),
    )
    for value in candidates:
        if isinstance(value, str) and value:
            return value
    return None


def _choices_delta_content(parsed: dict) -> Any:
    choices = parsed.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    return delta.get("content")


def describe_error(data: str) -> str:
    """从错误 payload 中提取后端给出的错误描述。

    依次尝试 ``error``（字符串，或带 message 的对象）与 ``message`` 字段，
    都拿不到时返回通用描述。
    """

    try:
        parsed = json.loads(data)
    except json.JSONDecodeError:
        return UNKNOWN_ERROR
    if not isinstance(parsed, dict):
        return UNKNOWN_ERROR

    error = parsed.get("error")
    if isinstance(error, dict):
        error = error.get("message")
    for value in (error, parsed.get("message")):
        if isinstance(value, str) and value.strip():
            return value.strip()
    return UNKNOWN_ERROR
