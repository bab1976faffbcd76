"""统一的消息与请求数据模型。

本模块定义了流式引擎与展示层之间共享的标准数据结构：

- Message: 会话中的一条消息（user / assistant），带生命周期状态。
- ChatRequest: 发给聊天后端的一次请求（仅包含最新一条用户输入）。

Message 的 content 只由 MessageAccumulator 写入，展示层拿到的都是快照。
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Literal, Optional
from uuid import uuid4


# 消息发送方（与后端的 role 字段对应）
Sender = Literal["user", "assistant"]


class MessageStatus(str, Enum):
    """消息生命周期状态。

    pending -> streaming -> complete | error | cancelled
    """

    PENDING = "pending"
    STREAMING = "streaming"
    COMPLETE = "complete"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({MessageStatus.COMPLETE, MessageStatus.ERROR, MessageStatus.CANCELLED})


def new_message_id() -> str:
    return f"m-{uuid4().hex}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Message:
    """一条会话消息。

    - id: 创建时分配，生命周期内不变。
    - sender: "user" 或 "assistant"。
    - content: 累积文本；仅在 streaming 状态下增长，终态后冻结。
    - status: 见 MessageStatus。
    - created_at: 创建时间（UTC）。
    """

    sender: Sender
    content: str = ""
    status: MessageStatus = MessageStatus.COMPLETE
    id: str = field(default_factory=new_message_id)
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def is_streaming(self) -> bool:
        return self.status is MessageStatus.STREAMING

    def copy(self) -> "Message":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sender": self.sender,
            "content": self.content,
            "status": self.status.value,
            "is_streaming": self.is_streaming,
            "created_at": self.created_at.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
        }


@dataclass
class ChatRequest:
    """一次聊天请求。

    后端只接收最新一条用户输入，不携带历史上下文。
    """

    text: str
    model: str
    token: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "messages": [{"role": "user", "content": self.text}],
            "model": self.model,
            "token": self.token or "",
        }
