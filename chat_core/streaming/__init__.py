"""流式响应解析引擎。

字节流 -> FrameDecoder（逻辑行）-> EventClassifier（事件）
-> payload_normalizer（文本增量）-> MessageAccumulator（消息状态）。
"""

from chat_core.streaming.accumulator import AccumulationBuffer, MessageAccumulator
from chat_core.streaming.cancellation import CANCELLED, CancellationToken
from chat_core.streaming.event_classifier import EventClassifier, StreamEvent
from chat_core.streaming.frame_decoder import FrameDecoder, decode_lines
from chat_core.streaming.payload_normalizer import describe_error, normalize_payload

__all__ = [
    "AccumulationBuffer",
    "MessageAccumulator",
    "CANCELLED",
    "CancellationToken",
    "EventClassifier",
    "StreamEvent",
    "FrameDecoder",
    "decode_lines",
    "describe_error",
    "normalize_payload",
]
