"""传输层抽象接口。

SessionController 不直接依赖 httpx，而是依赖此协议：

- open_stream(url, request, token) 返回一个异步上下文管理器，
  进入后得到 StreamResponse（状态码 + 原始字节流）。
- 退出上下文即释放连接；取消时由调用方提前退出上下文。

测试中可以用任意满足协议的假实现替换 HttpxTransport。
"""

from typing import AsyncContextManager, AsyncIterator, Optional, Protocol

from chat_core.domain.models import ChatRequest


class StreamResponse(Protocol):
    """已建立的流式响应。"""

    status_code: int

    def aiter_bytes(self) -> AsyncIterator[bytes]:
        ...


class StreamingTransport(Protocol):
    """能返回可读字节流、并支持提前中止的 HTTP 传输。"""

    name: str

    def open_stream(
        self,
        url: str,
        request: ChatRequest,
        token: Optional[str] = None,
    ) -> AsyncContextManager[StreamResponse]:
        ...
