"""打字事件与事件出口（sink）。

调度器只认一个可调用对象 `sink(event)`，宿主自己决定推还是拉：
- `EventHub`：推模式，回调订阅（转发给 WebSocket / OneBot 等传输层）；
- `EventQueue`：拉模式，基于 asyncio.Queue，消费者 `await queue.get()`。

同一会话的事件严格有序：
typing_start → chunk_delivered / typing_pause / typing_resume → typing_stop | typing_interrupted
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from nonebot import logger

from . import config

TYPING_START = "typing_start"
TYPING_STOP = "typing_stop"
TYPING_PAUSE = "typing_pause"
TYPING_RESUME = "typing_resume"
CHUNK_DELIVERED = "chunk_delivered"
TYPING_INTERRUPTED = "typing_interrupted"

TERMINAL_EVENTS = (TYPING_STOP, TYPING_INTERRUPTED)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class TypingEvent:
    type: str
    session_id: str
    timestamp: int = field(default_factory=now_ms)
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENTS

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "session_id": self.session_id,
            "timestamp": self.timestamp,
            "data": dict(self.data),
        }


EventSink = Callable[[TypingEvent], None]


class EventHub:
    """推模式：按订阅顺序同步回调；单个订阅者出错不影响其他订阅者。"""

    def __init__(self):
        self._subscribers: list[EventSink] = []

    def subscribe(self, callback: EventSink) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def __call__(self, event: TypingEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception(f"[typing][events] subscriber failed on {event.type} session={event.session_id}")


class EventQueue:
    """拉模式：事件进 asyncio.Queue。队列满时丢弃新事件并告警。"""

    def __init__(self, maxsize: int | None = None):
        self._queue: asyncio.Queue[TypingEvent] = asyncio.Queue(
            maxsize=config.TYPING_EVENT_QUEUE_SIZE if maxsize is None else maxsize
        )
        self.dropped = 0

    def __call__(self, event: TypingEvent) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"[typing][events] queue full, dropped {event.type} session={event.session_id}")

    async def get(self) -> TypingEvent:
        return await self._queue.get()

    def get_nowait(self) -> TypingEvent | None:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def drain(self) -> list[TypingEvent]:
        out: list[TypingEvent] = []
        while (ev := self.get_nowait()) is not None:
            out.append(ev)
        return out

    def qsize(self) -> int:
        return self._queue.qsize()
