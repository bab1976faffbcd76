import asyncio
from contextlib import asynccontextmanager

import pytest

from chat_core.domain.exceptions import ConfigurationError, TransportError
from chat_core.domain.models import MessageStatus
from chat_core.session.controller import SessionController
from chat_core.streaming.accumulator import FAILURE_PREFIX


class SettingsStub:
    chat_backend = "deepseek"
    chat_api_url = "https://chat.example.test/api"
    chat_api_token = "tok"
    chat_model = None
    require_token = True
    http_timeout = None
    greeting = "hello"


class FakeResponse:
    def __init__(self, status_code, chunks):
        self.status_code = status_code
        self._chunks = list(chunks)
        self.read_started = False

    async def aiter_bytes(self):
        self.read_started = True
        for item in self._chunks:
            if isinstance(item, asyncio.Event):
                await item.wait()
                continue
            if isinstance(item, Exception):
                raise item
            yield item
            await asyncio.sleep(0)


class FakeTransport:
    name = "fake"

    def __init__(self, *responses):
        self._responses = list(responses)
        self.requests = []

    @asynccontextmanager
    async def open_stream(self, url, request, token=None):
        self.requests.append((url, request, token))
        yield self._responses.pop(0)


def _controller(*responses, **kw):
    transport = FakeTransport(*responses)
    return SessionController(SettingsStub(), transport, **kw), transport


async def _wait_for(predicate):
    for _ in range(1000):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


OPENAI_BODY = (
    'data: {"choices":[{"delta":{"content":"Hi"}}]}\n\n'
    'data: {"choices":[{"delta":{"content":" there"}}]}\n\n'
    "data: [DONE]\n\n"
).encode("utf-8")


def test_submit_openai_stream_completes():
    ctrl, transport = _controller(FakeResponse(200, [OPENAI_BODY]))
    result = asyncio.run(ctrl.submit("hey"))
    assert result.content == "Hi there"
    assert result.status is MessageStatus.COMPLETE
    assert not ctrl.is_loading
    assert not ctrl.is_streaming

    url, request, token = transport.requests[0]
    assert url == "https://chat.example.test/api"
    assert token == "tok"
    assert request.to_payload() == {
        "messages": [{"role": "user", "content": "hey"}],
        "model": "deepseek-chat",
        "token": "tok",
    }
    senders = [(m.sender, m.status) for m in ctrl.messages]
    assert senders == [
        ("assistant", MessageStatus.COMPLETE),
        ("user", MessageStatus.COMPLETE),
        ("assistant", MessageStatus.COMPLETE),
    ]


def test_content_is_independent_of_chunk_boundaries():
    body = (
        'data: {"content":"你好"}\n\n'
        'data: {"text":"，世界"}\n\n'
        "data: plain tail\n\n"
        "data: [DONE]\n\n"
    ).encode("utf-8")
    expected = "你好，世界plain tail"
    splits = [[body], [bytes([b]) for b in body]]
    splits += [[body[:i], body[i:]] for i in range(1, len(body), 3)]
    for chunks in splits:
        ctrl, _ = _controller(FakeResponse(200, chunks))
        result = asyncio.run(ctrl.submit("q"))
        assert result.content == expected
        assert result.status is MessageStatus.COMPLETE


def test_done_freezes_content_at_that_point():
    body = b'data: {"content":"a"}\n\ndata: [DONE]\n\ndata: {"content":"b"}\n\n'
    ctrl, _ = _controller(FakeResponse(200, [body]))
    result = asyncio.run(ctrl.submit("q"))
    assert result.content == "a"
    assert result.status is MessageStatus.COMPLETE


def test_finish_event_terminates_stream():
    body = b'data: {"content":"a"}\n\nevent: finish\ndata: {"content":"b"}\n\n'
    ctrl, _ = _controller(FakeResponse(200, [body]))
    result = asyncio.run(ctrl.submit("q"))
    assert result.content == "a"
    assert result.status is MessageStatus.COMPLETE


def test_malformed_payload_does_not_abort():
    body = b'data: {"content":"a"}\n\ndata: {"content": broken\n\ndata: {"content":"b"}\n\ndata: [DONE]\n\n'
    ctrl, _ = _controller(FakeResponse(200, [body]))
    result = asyncio.run(ctrl.submit("q"))
    assert result.content == "ab"
    assert result.status is MessageStatus.COMPLETE


def test_error_event_fails_with_backend_description():
    body = b'event: error\ndata: {"error":"quota exceeded"}\n\n'
    ctrl, _ = _controller(FakeResponse(200, [body]))
    result = asyncio.run(ctrl.submit("q"))
    assert result.status is MessageStatus.ERROR
    assert "quota exceeded" in result.content
    assert result.content.startswith(FAILURE_PREFIX)


def test_error_event_discards_partial_content():
    body = b'data: {"content":"partial"}\n\nevent: error\ndata: not-json\n\n'
    ctrl, _ = _controller(FakeResponse(200, [body]))
    result = asyncio.run(ctrl.submit("q"))
    assert result.status is MessageStatus.ERROR
    assert "partial" not in result.content
    assert "发生未知错误" in result.content


def test_http_failure_never_reaches_decode():
    resp = FakeResponse(500, [OPENAI_BODY])
    ctrl, _ = _controller(resp)
    result = asyncio.run(ctrl.submit("q"))
    assert result.status is MessageStatus.ERROR
    assert result.content == f"{FAILURE_PREFIX}HTTP error! status: 500"
    assert resp.read_started is False


def test_transport_error_mid_stream():
    resp = FakeResponse(200, [b'data: {"content":"a"}\n\n', TransportError(code="NETWORK_ERROR", message="reset")])
    ctrl, _ = _controller(resp)
    result = asyncio.run(ctrl.submit("q"))
    assert result.status is MessageStatus.ERROR
    assert result.content == f"{FAILURE_PREFIX}reset"


def test_eof_without_terminal_after_delta_is_complete():
    ctrl, _ = _controller(FakeResponse(200, [b'data: {"content":"a"}\n\ndata: {"content":"b"}']))
    result = asyncio.run(ctrl.submit("q"))
    assert result.content == "ab"
    assert result.status is MessageStatus.COMPLETE


def test_empty_body_is_error():
    ctrl, _ = _controller(FakeResponse(200, []))
    result = asyncio.run(ctrl.submit("q"))
    assert result.status is MessageStatus.ERROR
    assert "无法获取响应流" in result.content


def test_eof_without_any_delta_is_error():
    ctrl, _ = _controller(FakeResponse(200, [b'data: {"choices":[{"delta":{"role":"assistant"}}]}\n\n']))
    result = asyncio.run(ctrl.submit("q"))
    assert result.status is MessageStatus.ERROR
    assert "响应流在完成前结束" in result.content


def test_cancel_mid_stream_keeps_partial_content():
    async def scenario():
        gate = asyncio.Event()
        resp = FakeResponse(200, [b'data: {"content":"Hel"}\n\n', gate, b'data: {"content":"lo"}\n\n'])
        ctrl, _ = _controller(resp)
        task = asyncio.create_task(ctrl.submit("q"))
        await _wait_for(lambda: ctrl.messages[-1].content == "Hel")
        assert ctrl.is_loading
        assert ctrl.cancel() is True
        assert ctrl.cancel() is False
        gate.set()
        result = await task
        return ctrl, result

    ctrl, result = asyncio.run(scenario())
    assert result.status is MessageStatus.CANCELLED
    assert result.content == "Hel"
    assert ctrl.messages[-1].content == "Hel"
    assert not ctrl.is_loading


def test_cancel_without_exchange_is_noop():
    ctrl, _ = _controller()
    assert ctrl.cancel() is False
    assert len(ctrl.messages) == 1


def test_second_submit_cancels_first():
    async def scenario():
        gate = asyncio.Event()
        first = FakeResponse(
            200,
            [b'data: {"content":"A"}\n\n', gate, b'data: {"content":"B"}\n\ndata: [DONE]\n\n'],
        )
        second = FakeResponse(200, [b'data: {"content":"second"}\n\ndata: [DONE]\n\n'])
        ctrl, _ = _controller(first, second)
        t1 = asyncio.create_task(ctrl.submit("one"))
        await _wait_for(lambda: ctrl.messages[-1].content == "A")
        r2 = await ctrl.submit("two")
        gate.set()
        r1 = await t1
        return ctrl, r1, r2

    ctrl, r1, r2 = asyncio.run(scenario())
    assert r1.status is MessageStatus.CANCELLED
    assert r1.content == "A"
    assert r2.status is MessageStatus.COMPLETE
    assert r2.content == "second"
    assert [m.content for m in ctrl.messages] == ["hello", "one", "A", "two", "second"]


def test_missing_url_rejected_before_io():
    ctrl, transport = _controller(api_url="")
    with pytest.raises(ConfigurationError) as exc:
        asyncio.run(ctrl.submit("q"))
    assert exc.value.code == "MISSING_API_URL"
    assert transport.requests == []
    assert len(ctrl.messages) == 1


def test_missing_token_rejected_when_required():
    ctrl, transport = _controller(api_token="  ")
    with pytest.raises(ConfigurationError) as exc:
        asyncio.run(ctrl.submit("q"))
    assert exc.value.code == "MISSING_API_TOKEN"
    assert transport.requests == []


def test_token_optional_when_not_required():
    class NoTokenSettings(SettingsStub):
        chat_api_token = None
        require_token = False

    transport = FakeTransport(FakeResponse(200, [OPENAI_BODY]))
    ctrl = SessionController(NoTokenSettings(), transport)
    result = asyncio.run(ctrl.submit("q"))
    assert result.status is MessageStatus.COMPLETE
    assert transport.requests[0][2] is None


def test_blank_input_is_ignored():
    ctrl, transport = _controller()
    assert asyncio.run(ctrl.submit("   ")) is None
    assert transport.requests == []
    assert len(ctrl.messages) == 1


def test_reset_restores_greeting():
    ctrl, _ = _controller(FakeResponse(200, [OPENAI_BODY]))
    asyncio.run(ctrl.submit("q"))
    assert len(ctrl.messages) == 3
    ctrl.reset()
    msgs = ctrl.messages
    assert len(msgs) == 1
    assert msgs[0].content == "hello"


def test_configure_updates_endpoint():
    ctrl, transport = _controller(FakeResponse(200, [OPENAI_BODY]))
    ctrl.configure(api_url=" https://other.test/v1 ", api_token="new-token", model="m2")
    asyncio.run(ctrl.submit("q"))
    url, request, token = transport.requests[0]
    assert url == "https://other.test/v1"
    assert token == "new-token"
    assert request.model == "m2"


def test_listeners_receive_snapshots():
    ctrl, _ = _controller(FakeResponse(200, [OPENAI_BODY]))
    seen = []
    unsubscribe = ctrl.subscribe(lambda msgs: seen.append((msgs[-1].status, msgs[-1].content)))
    asyncio.run(ctrl.submit("q"))
    assert (MessageStatus.PENDING, "") in seen
    assert (MessageStatus.STREAMING, "Hi") in seen
    assert seen[-1] == (MessageStatus.COMPLETE, "Hi there")
    unsubscribe()
    count = len(seen)
    ctrl.reset()
    assert len(seen) == count


def test_listener_failure_does_not_break_stream():
    ctrl, _ = _controller(FakeResponse(200, [OPENAI_BODY]))

    def boom(_msgs):
        raise RuntimeError("render failed")

    ctrl.subscribe(boom)
    result = asyncio.run(ctrl.submit("q"))
    assert result.content == "Hi there"


def test_unexpected_exception_fails_only_current_exchange():
    resp = FakeResponse(200, [b'data: {"content":"a"}\n\n', ValueError("bad chunk")])
    ctrl, _ = _controller(resp, FakeResponse(200, [OPENAI_BODY]))
    result = asyncio.run(ctrl.submit("q"))
    assert result.status is MessageStatus.ERROR
    assert result.content == f"{FAILURE_PREFIX}bad chunk"
    assert ctrl.is_streaming is False
    assert ctrl.is_loading is False

    second = asyncio.run(ctrl.submit("again"))
    assert second.status is MessageStatus.COMPLETE
    assert [m.status for m in ctrl.messages].count(MessageStatus.STREAMING) == 0


class SlowOpenTransport:
    name = "slow"

    def __init__(self, response):
        self.response = response
        self.opened = asyncio.Event()
        self.entered = False

    @asynccontextmanager
    async def open_stream(self, url, request, token=None):
        self.entered = True
        await self.opened.wait()
        yield self.response


def test_cancel_while_request_is_opening():
    async def scenario():
        resp = FakeResponse(200, [OPENAI_BODY])
        transport = SlowOpenTransport(resp)
        ctrl = SessionController(SettingsStub(), transport)
        task = asyncio.create_task(ctrl.submit("q"))
        await _wait_for(lambda: transport.entered)
        assert ctrl.messages[-1].status is MessageStatus.STREAMING
        assert ctrl.cancel() is True
        transport.opened.set()
        result = await task
        return ctrl, resp, result

    ctrl, resp, result = asyncio.run(scenario())
    assert result.status is MessageStatus.CANCELLED
    assert result.content == ""
    assert resp.read_started is False
    assert not ctrl.is_loading
