"""逻辑行 -> 事件。

识别三类行：

- ``data: <payload>``  数据行；
- ``event: <type>``    事件类型行，已知取值 finish / done / error；
- 空行                 事件分隔符。

其他行忽略。``event: error`` 之后的第一条数据行视为错误 payload。
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, Literal, Optional


DATA_PREFIX = "data: "
EVENT_PREFIX = "event: "
DONE_SENTINEL = "[DONE]"
TERMINAL_EVENT_TYPES = frozenset({"finish", "done"})
ERROR_EVENT_TYPE = "error"

EventKind = Literal["data", "error", "terminal"]


@dataclass(frozen=True)
class StreamEvent:
    """分类结果。

    - kind="data": payload 为待解析的数据。
    - kind="error": payload 为后端返回的错误数据。
    - kind="terminal": 流已逻辑结束，event_type 记录触发来源。
    """

    kind: EventKind
    payload: str = ""
    event_type: Optional[str] = None


class EventClassifier:
    """逐行分类，终止事件之后不再产出任何事件。"""

    def __init__(self):
        self.finished = False
        self.event_type: Optional[str] = None
        self._error_tagged = False

    def classify(self, line: str) -> Optional[StreamEvent]:
        if self.finished:
            return None
        if not line.strip():
            # 空行只分隔事件，不清除 error 标记
            return None

        if line.startswith(EVENT_PREFIX):
            value = line[len(EVENT_PREFIX):].strip()
            self.event_type = value
            if value in TERMINAL_EVENT_TYPES:
                self.finished = True
                return StreamEvent(kind="terminal", event_type=value)
            self._error_tagged = value == ERROR_EVENT_TYPE
            return None

        if line.startswith(DATA_PREFIX):
            data = line[len(DATA_PREFIX):].strip()
            error_tagged, self._error_tagged = self._error_tagged, False
            if data == DONE_SENTINEL:
                self.finished = True
                return StreamEvent(kind="terminal", payload=data, event_type=self.event_type)
            if error_tagged:
                return StreamEvent(kind="error", payload=data, event_type=ERROR_EVENT_TYPE)
            if not data:
                return None
            return StreamEvent(kind="data", payload=data, event_type=self.event_type)

        self._error_tagged = False
        return None

    def classify_lines(self, lines: Iterable[str]) -> Iterator[StreamEvent]:
        for line in lines:
            event = self.classify(line)
            if event is not None:
                yield event
            if self.finished:
                return
