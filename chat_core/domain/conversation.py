from typing import Iterator, List, Optional

from chat_core.config.settings import DEFAULT_GREETING
from .exceptions import BusinessError
from .models import Message, MessageStatus


class Conversation:
    """有序消息列表，插入顺序即展示顺序。

    同一时间最多只有一条消息处于 streaming 状态。
    """

    def __init__(self, greeting: str = DEFAULT_GREETING):
        self._greeting = greeting
        self._messages: List[Message] = []
        self.reset()

    def reset(self) -> None:
        """清空会话，只保留一条问候消息。"""
        self._messages = [Message(sender="assistant", content=self._greeting)]

    def append(self, message: Message) -> Message:
        if message.is_streaming and self.streaming_messages():
            raise BusinessError(
                code="CONCURRENT_STREAM",
                message="another message is still streaming",
                message_id=message.id,
            )
        self._messages.append(message)
        return message

    def get(self, message_id: str) -> Optional[Message]:
        for m in self._messages:
            if m.id == message_id:
                return m
        return None

    def streaming_messages(self) -> List[Message]:
        return [m for m in self._messages if m.status is MessageStatus.STREAMING]

    def snapshot(self) -> List[Message]:
        return [m.copy() for m in self._messages]

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def __len__(self) -> int:
        return len(self._messages)
