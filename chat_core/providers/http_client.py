"""基于 httpx 的流式传输实现。

本模块负责：

1. 把 ChatRequest 序列化为后端要求的 JSON 请求体。
2. 按需附加 Authorization: Bearer <token> 请求头。
3. 以流式方式发起 POST，并把 httpx 的网络异常统一包装为 TransportError。

状态码判断与逐块解码由 SessionController 与 streaming 包负责，
这里只管“把字节流拿到手”。
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

import httpx

from chat_core.domain.exceptions import TransportError
from chat_core.domain.models import ChatRequest


class HttpxTransport:
    """httpx.AsyncClient 传输实现。

    - timeout: None 表示不设超时（挂起的连接只能依靠取消结束）。
    - transport: 可注入 httpx 底层传输（测试中使用 httpx.MockTransport）。
    """

    name = "httpx"

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._timeout = timeout
        self._transport = transport

    @asynccontextmanager
    async def open_stream(
        self,
        url: str,
        request: ChatRequest,
        token: Optional[str] = None,
    ) -> AsyncIterator["HttpxStreamResponse"]:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                trust_env=False,
                transport=self._transport,
            ) as client:
                async with client.stream(
                    "POST",
                    url,
                    json=request.to_payload(),
                    headers=self._build_headers(token),
                ) as resp:
                    yield HttpxStreamResponse(resp)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            # 网络错误：DNS 失败、连接中断、读取失败、URL 非法等
            raise TransportError(code="NETWORK_ERROR", message=str(e) or type(e).__name__)

    @staticmethod
    def _build_headers(token: Optional[str]) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers


class HttpxStreamResponse:
    """把 httpx.Response 适配为 StreamResponse。"""

    def __init__(self, response: httpx.Response):
        self._response = response
        self.status_code = response.status_code

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_bytes():
                if chunk:
                    yield chunk
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(code="NETWORK_ERROR", message=str(e) or type(e).__name__)
