"""协作式取消令牌。

解码循环在每个挂起点（发起请求、等待下一个 chunk）之后检查令牌；
guard() 让挂起中的等待在令牌触发时立即让出，而不是一直等到传输层返回。
"""

import asyncio
from typing import Any, Awaitable


class _Cancelled:
    def __repr__(self) -> str:
        return "CANCELLED"


# guard() 在令牌触发时返回的哨兵值
CANCELLED: Any = _Cancelled()


class CancellationToken:
    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        """触发取消；重复调用无副作用，返回本次是否真正生效。"""

        if self._event.is_set():
            return False
        self._event.set()
        return True

    async def wait(self) -> None:
        await self._event.wait()

    async def guard(self, awaitable: Awaitable[Any]) -> Any:
        """等待 awaitable 完成，或在令牌触发时放弃它并返回 CANCELLED。

        令牌触发后即使 awaitable 也已完成，其结果同样被丢弃。
        """

        task = asyncio.ensure_future(awaitable)
        if self.cancelled:
            return await self._abandon(task)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()
        if self.cancelled:
            return await self._abandon(task)
        return task.result()

    @staticmethod
    async def _abandon(task: "asyncio.Future[Any]") -> Any:
        task.cancel()
        # 取回结果/异常，避免 "exception was never retrieved" 警告
        await asyncio.gather(task, return_exceptions=True)
        return CANCELLED
