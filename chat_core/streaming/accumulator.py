"""消息累积器 / 状态机。

MessageAccumulator 是 assistant 消息 content 的唯一写入者：

    pending --start()--> streaming --apply()--> streaming
    streaming --complete()--> complete
    streaming --fail()--> error       （content 替换为失败描述）
    任意非终态 --cancel()--> cancelled （保留已有内容，静默结束）

终态之后的任何调用都是 no-op 并返回 False。
"""

from typing import Callable, Dict, Optional

from chat_core.domain.models import Message, MessageStatus
from chat_core.infrastructure.logging.logger import logger


FAILURE_PREFIX = "抱歉，请求失败了："


class AccumulationBuffer:
    """按消息 id 保存流式过程中的工作文本，消息进入终态后丢弃。"""

    def __init__(self):
        self._texts: Dict[str, str] = {}

    def open(self, message_id: str, initial: str = "") -> None:
        self._texts[message_id] = initial

    def append(self, message_id: str, delta: str) -> str:
        text = self._texts[message_id] + delta
        self._texts[message_id] = text
        return text

    def get(self, message_id: str) -> Optional[str]:
        return self._texts.get(message_id)

    def discard(self, message_id: str) -> None:
        self._texts.pop(message_id, None)

    def clear(self) -> None:
        self._texts.clear()

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._texts

    def __len__(self) -> int:
        return len(self._texts)


class MessageAccumulator:
    def __init__(
        self,
        message: Message,
        buffer: Optional[AccumulationBuffer] = None,
        on_change: Optional[Callable[[Message], None]] = None,
    ):
        self._message = message
        self._buffer = buffer if buffer is not None else AccumulationBuffer()
        self._on_change = on_change
        self.delta_count = 0

    @property
    def message(self) -> Message:
        return self._message

    @property
    def is_terminal(self) -> bool:
        return self._message.status.is_terminal

    def start(self) -> bool:
        if self._message.status is not MessageStatus.PENDING:
            return self._reject("start")
        self._message.status = MessageStatus.STREAMING
        self._buffer.open(self._message.id, self._message.content)
        self._changed()
        return True

    def apply(self, delta: str) -> bool:
        """追加一段增量，严格按调用顺序拼接。"""

        if self._message.status is not MessageStatus.STREAMING:
            return self._reject("apply")
        if not delta:
            return False
        self._message.content = self._buffer.append(self._message.id, delta)
        self.delta_count += 1
        self._changed()
        return True

    def complete(self) -> bool:
        if self.is_terminal:
            return self._reject("complete")
        self._finish(MessageStatus.COMPLETE)
        return True

    def fail(self, description: str) -> bool:
        """以错误结束：丢弃已流出的部分内容，替换为失败描述。"""

        if self.is_terminal:
            return self._reject("fail")
        self._message.content = f"{FAILURE_PREFIX}{description}"
        self._finish(MessageStatus.ERROR)
        return True

    def cancel(self) -> bool:
        if self.is_terminal:
            return False
        self._finish(MessageStatus.CANCELLED)
        return True

    def _finish(self, status: MessageStatus) -> None:
        self._message.status = status
        self._buffer.discard(self._message.id)
        self._changed()

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self._message)

    def _reject(self, op: str) -> bool:
        logger.debug(
            "Ignored accumulator call",
            extra={"extra": {"op": op, "message_id": self._message.id, "status": self._message.status.value}},
        )
        return False
