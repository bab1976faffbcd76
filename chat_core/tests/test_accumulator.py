from chat_core.domain.models import Message, MessageStatus
from chat_core.streaming.accumulator import FAILURE_PREFIX, AccumulationBuffer, MessageAccumulator


def _pending():
    return Message(sender="assistant", status=MessageStatus.PENDING)


def test_accumulator_concatenates_in_order():
    buf = AccumulationBuffer()
    msg = _pending()
    acc = MessageAccumulator(msg, buf)
    assert acc.start()
    assert msg.is_streaming
    for delta in ("Hi", " ", "there"):
        assert acc.apply(delta)
    assert msg.content == "Hi there"
    assert buf.get(msg.id) == "Hi there"
    assert acc.complete()
    assert msg.status is MessageStatus.COMPLETE
    assert msg.id not in buf


def test_accumulator_content_frozen_after_complete():
    msg = _pending()
    acc = MessageAccumulator(msg)
    acc.start()
    acc.apply("done")
    acc.complete()
    assert acc.apply("more") is False
    assert acc.fail("late") is False
    assert acc.cancel() is False
    assert msg.content == "done"
    assert msg.status is MessageStatus.COMPLETE


def test_accumulator_apply_requires_streaming():
    msg = _pending()
    acc = MessageAccumulator(msg)
    assert acc.apply("x") is False
    assert msg.content == ""


def test_accumulator_fail_discards_partial_content():
    msg = _pending()
    acc = MessageAccumulator(msg)
    acc.start()
    acc.apply("partial")
    assert acc.fail("HTTP error! status: 502")
    assert msg.status is MessageStatus.ERROR
    assert msg.content == f"{FAILURE_PREFIX}HTTP error! status: 502"


def test_accumulator_cancel_keeps_partial_content():
    buf = AccumulationBuffer()
    msg = _pending()
    acc = MessageAccumulator(msg, buf)
    acc.start()
    acc.apply("par")
    assert acc.cancel()
    assert msg.status is MessageStatus.CANCELLED
    assert msg.content == "par"
    assert len(buf) == 0
    assert acc.apply("tial") is False
    assert msg.content == "par"


def test_accumulator_notifies_on_change():
    seen = []
    msg = _pending()
    acc = MessageAccumulator(msg, on_change=lambda m: seen.append((m.status, m.content)))
    acc.start()
    acc.apply("a")
    acc.complete()
    assert seen == [
        (MessageStatus.STREAMING, ""),
        (MessageStatus.STREAMING, "a"),
        (MessageStatus.COMPLETE, "a"),
    ]
