"""会话控制器。

负责一次完整的请求/响应交换：

1. 校验端点与凭证配置（失败直接抛 ConfigurationError，不发起网络请求）。
2. 取消仍在进行中的上一次交换，保证同一时间只有一条 streaming 消息。
3. 追加 user 消息与 pending 状态的 assistant 消息，发起请求。
4. 驱动 FrameDecoder -> EventClassifier -> payload_normalizer -> MessageAccumulator，
   直到收到结束信号、出错或被取消。

交换级错误（TransportError / UpstreamError）只会结束当前消息，
控制器本身随时可以接受下一次 submit。
"""

import asyncio
import logging
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, List, Literal, Optional
from uuid import uuid4

from chat_core.config.settings import DEFAULT_GREETING, settings
from chat_core.domain.conversation import Conversation
from chat_core.domain.exceptions import (
    ConfigurationError,
    StreamIncompleteError,
    TransportError,
    UpstreamError,
)
from chat_core.domain.models import ChatRequest, Message, MessageStatus
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers import create_transport, resolve_endpoint
from chat_core.providers.base import StreamingTransport, StreamResponse
from chat_core.streaming.accumulator import AccumulationBuffer, MessageAccumulator
from chat_core.streaming.cancellation import CANCELLED, CancellationToken
from chat_core.streaming.event_classifier import EventClassifier
from chat_core.streaming.frame_decoder import FrameDecoder
from chat_core.streaming.payload_normalizer import describe_error, normalize_payload


Listener = Callable[[List[Message]], None]
ExchangeOutcome = Literal["terminal", "eof", "cancelled"]


@dataclass
class Exchange:
    """一次交换：user 消息、assistant 消息、取消令牌。"""

    user_message: Message
    assistant_message: Message
    accumulator: MessageAccumulator
    token: CancellationToken = field(default_factory=CancellationToken)
    trace_id: str = field(default_factory=lambda: f"tr-{uuid4().hex}")


class SessionController:
    def __init__(
        self,
        cfg=None,
        transport: Optional[StreamingTransport] = None,
        *,
        api_url: Optional[str] = None,
        api_token: Optional[str] = None,
        model: Optional[str] = None,
    ):
        self._settings = cfg or settings
        default_url, default_model = resolve_endpoint(self._settings)
        self.api_url: Optional[str] = _clean(api_url) if api_url is not None else default_url
        self.api_token: Optional[str] = _clean(api_token) if api_token is not None else _clean(
            getattr(self._settings, "chat_api_token", None)
        )
        self.model: str = model or default_model
        self._transport = transport or create_transport(self._settings)
        self._conversation = Conversation(greeting=getattr(self._settings, "greeting", None) or DEFAULT_GREETING)
        self._buffer = AccumulationBuffer()
        self._exchange: Optional[Exchange] = None
        self._listeners: List[Listener] = []

    # ---- 展示层读取的状态 ----

    @property
    def messages(self) -> List[Message]:
        """当前会话消息的快照（按展示顺序）。"""
        return self._conversation.snapshot()

    @property
    def is_loading(self) -> bool:
        return self._exchange is not None

    @property
    def is_streaming(self) -> bool:
        return bool(self._conversation.streaming_messages())

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """注册状态变更回调，返回取消注册的函数。"""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def configure(
        self,
        api_url: Optional[str] = None,
        api_token: Optional[str] = None,
        model: Optional[str] = None,
    ) -> None:
        """运行时修改端点配置；None 表示不修改，空字符串表示清除。"""

        if api_url is not None:
            self.api_url = _clean(api_url)
        if api_token is not None:
            self.api_token = _clean(api_token)
        if model is not None and model.strip():
            self.model = model.strip()

    # ---- 控制接口 ----

    async def submit(self, text: str) -> Optional[Message]:
        """发送一条用户输入并驱动流式响应，返回 assistant 消息的最终快照。

        空白输入直接忽略并返回 None。

        Raises:
            ConfigurationError: 未配置接口地址或凭证。
        """

        if not text or not text.strip():
            return None
        self._check_config()
        self.cancel()

        user_msg = self._conversation.append(Message(sender="user", content=text))
        assistant_msg = self._conversation.append(Message(sender="assistant", status=MessageStatus.PENDING))
        exchange = Exchange(
            user_message=user_msg,
            assistant_message=assistant_msg,
            accumulator=MessageAccumulator(assistant_msg, self._buffer, on_change=lambda _m: self._notify()),
        )
        self._exchange = exchange
        self._notify()
        try:
            await self._run_exchange(exchange)
        except asyncio.CancelledError:
            # 外部取消了 submit 所在的任务，按取消处理
            exchange.token.cancel()
            exchange.accumulator.cancel()
            raise
        finally:
            if self._exchange is exchange:
                self._exchange = None
            self._notify()
        return assistant_msg.copy()

    def cancel(self) -> bool:
        """取消进行中的交换；没有交换时什么也不做。"""

        exchange = self._exchange
        if exchange is None:
            return False
        self._exchange = None
        exchange.token.cancel()
        exchange.accumulator.cancel()
        self._log(
            logging.INFO,
            "Exchange cancelled",
            exchange,
            delta_count=exchange.accumulator.delta_count,
        )
        return True

    def reset(self) -> None:
        """回到只有问候语的初始会话。"""

        self.cancel()
        self._conversation.reset()
        self._buffer.clear()
        self._notify()

    # ---- 内部实现 ----

    def _check_config(self) -> None:
        if not self.api_url:
            raise ConfigurationError(code="MISSING_API_URL", message="请先设置API URL")
        if getattr(self._settings, "require_token", True) and not self.api_token:
            raise ConfigurationError(code="MISSING_API_TOKEN", message="请先设置 API Token")

    async def _run_exchange(self, exchange: Exchange) -> None:
        start_time = time.time()
        acc = exchange.accumulator
        request = ChatRequest(text=exchange.user_message.content, model=self.model, token=self.api_token)
        acc.start()
        self._log(logging.INFO, "Exchange started", exchange, url=self.api_url, model=self.model)

        try:
            outcome = await self._consume(exchange, request)
        except (TransportError, UpstreamError) as e:
            if exchange.token.cancelled:
                return
            level = logging.WARNING if isinstance(e, UpstreamError) else logging.ERROR
            self._log(level, "Exchange failed", exchange, code=e.code, error=e.message, **e.extra)
            acc.fail(e.message)
            return
        except Exception as e:  # noqa: BLE001 - 交换级异常只结束当前消息
            if exchange.token.cancelled:
                return
            description = str(e) or type(e).__name__
            self._log(logging.ERROR, "Exchange crashed", exchange, error=description, exc_type=type(e).__name__)
            acc.fail(description)
            return

        if outcome == "cancelled":
            return
        acc.complete()
        self._log(
            logging.INFO,
            "Exchange completed",
            exchange,
            outcome=outcome,
            delta_count=acc.delta_count,
            elapsed_seconds=round(time.time() - start_time, 2),
        )

    async def _consume(self, exchange: Exchange, request: ChatRequest) -> ExchangeOutcome:
        token = exchange.token
        acc = exchange.accumulator
        async with AsyncExitStack() as stack:
            response: StreamResponse = await token.guard(
                stack.enter_async_context(self._transport.open_stream(self.api_url, request, self.api_token))
            )
            if response is CANCELLED:
                return "cancelled"
            status = response.status_code
            if not 200 <= status < 300:
                raise TransportError(
                    code="HTTP_ERROR",
                    message=f"HTTP error! status: {status}",
                    http_status=status,
                    status_code=status,
                )

            chunks = response.aiter_bytes()
            aclose = getattr(chunks, "aclose", None)
            if aclose is not None:
                stack.push_async_callback(aclose)
            decoder = FrameDecoder()
            classifier = EventClassifier()
            while True:
                chunk = await token.guard(_next_chunk(chunks))
                if chunk is CANCELLED:
                    return "cancelled"
                lines = decoder.feed(chunk) if chunk is not None else decoder.flush()
                for line in lines:
                    if token.cancelled:
                        return "cancelled"
                    event = classifier.classify(line)
                    if event is None:
                        continue
                    if event.kind == "terminal":
                        return "terminal"
                    if event.kind == "error":
                        raise UpstreamError(code="UPSTREAM_ERROR", message=describe_error(event.payload))
                    delta = normalize_payload(event.payload)
                    if delta:
                        acc.apply(delta)
                if chunk is None:
                    break

        if decoder.bytes_received == 0:
            raise TransportError(code="EMPTY_BODY", message="无法获取响应流")
        if acc.delta_count == 0:
            raise StreamIncompleteError(code="STREAM_INCOMPLETE", message="响应流在完成前结束")
        # 没有显式结束信号但已收到内容，按完成处理
        return "eof"

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.messages
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:  # noqa: BLE001 - 展示层回调失败不能中断解码
                logger.exception("Listener failed")

    @staticmethod
    def _log(level: int, message: str, exchange: Exchange, **fields: Any) -> None:
        payload: Dict[str, Any] = {
            "trace_id": exchange.trace_id,
            "message_id": exchange.assistant_message.id,
        }
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})


async def _next_chunk(chunks: AsyncIterator[bytes]) -> Optional[bytes]:
    try:
        return await chunks.__anext__()
    except StopAsyncIteration:
        return None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None
