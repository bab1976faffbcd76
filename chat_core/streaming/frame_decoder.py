"""字节流 -> 逻辑行。

传输层交付的 chunk 边界是任意的：一个多字节字符可能被切成两半，
一行协议文本也可能跨越多个 chunk。FrameDecoder 用增量解码器保留
未完成的字节序列，并把最后一段不完整的行暂存，拼到下一个 chunk 前面
再重新切分。
"""

import codecs
from typing import AsyncIterable, AsyncIterator, List

from chat_core.domain.exceptions import TransportError


class FrameDecoder:
    """有状态的逐块解码器，每条响应流使用一个新实例。"""

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="strict")
        self._carry = ""
        self.bytes_received = 0

    def feed(self, chunk: bytes) -> List[str]:
        """喂入一个 chunk，返回其中已经完整的行（不含行结束符）。"""

        self.bytes_received += len(chunk)
        return self._split(self._decode(chunk, final=False))

    def flush(self) -> List[str]:
        """输入结束：返回剩余的未换行片段（若非空）。"""

        lines = self._split(self._decode(b"", final=True))
        if self._carry:
            lines.append(self._carry.rstrip("\r"))
            self._carry = ""
        return lines

    def _decode(self, chunk: bytes, final: bool) -> str:
        try:
            return self._decoder.decode(chunk, final)
        except UnicodeDecodeError as e:
            raise TransportError(code="DECODE_ERROR", message=f"响应流解码失败：{e}")

    def _split(self, text: str) -> List[str]:
        if not text:
            return []
        parts = (self._carry + text).split("\n")
        self._carry = parts.pop()
        return [p[:-1] if p.endswith("\r") else p for p in parts]


async def decode_lines(chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
    """把异步字节流转成逻辑行序列（惰性，不可重放）。"""

    decoder = FrameDecoder()
    async for chunk in chunks:
        for line in decoder.feed(chunk):
            yield line
    for line in decoder.flush():
        yield line
