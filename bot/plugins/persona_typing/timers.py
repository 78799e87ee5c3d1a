"""会话级定时器组。

每个会话的所有待执行回调（下一步投递、结束后清理）都登记在一个 `SessionTimers` 里，
状态切换时 `cancel_all()` 一次性全部取消，不会有“漏网”的旧回调晚到。

`loop` 只要求有 `time()`（秒）和 `call_later(delay, cb)`，
生产环境是 asyncio 事件循环，测试里可以换成手动推进的假时钟。
"""

from __future__ import annotations

from typing import Any, Callable, Protocol

from nonebot import logger


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class LoopLike(Protocol):
    def time(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


class SessionTimers:
    def __init__(self, session_id: str, loop: LoopLike):
        self.session_id = session_id
        self.loop = loop
        self._handles: dict[str, TimerHandle] = {}

    def arm(self, name: str, delay_ms: float, callback: Callable[[], None]) -> None:
        """登记一个定时回调；同名的旧回调会先被取消。"""
        self.cancel(name)

        def _fire() -> None:
            self._handles.pop(name, None)
            callback()

        self._handles[name] = self.loop.call_later(max(0.0, delay_ms) / 1000, _fire)

    def cancel(self, name: str) -> bool:
        handle = self._handles.pop(name, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> int:
        count = len(self._handles)
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()
        if count:
            logger.debug(f"[typing][timers] cancelled {count} timer(s) session={self.session_id}")
        return count

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, name: str) -> bool:
        return name in self._handles
