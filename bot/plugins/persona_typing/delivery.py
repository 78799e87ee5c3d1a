"""打字投递调度器（DeliveryScheduler）。

职责：
1. 为每个会话维护一个状态机：running / paused / interrupted / completed（不存在即 absent）。
2. 把 TypingSimulation 按事件循环时间“播放”出来，逐块发出 chunk_delivered。
3. 提供 start / pause / resume / interrupt / stop / update_settings 控制，全部立即返回，
   只负责登记或取消定时回调。

调度方式：
- 每个会话同一时刻只挂一个“下一步”定时器，触发时按时间线顺序处理所有到期步骤，
  再登记下一个；截止时间都从本轮起点（origin）算绝对值，不会累积漂移。
- 暂停 = 取消该会话全部定时器并记下已播放时长；恢复时从 `current_chunk_index` 继续，
  已投递的块不会重发。
- 任何结束/挂起的状态切换都会先 `cancel_all()`，旧回调不可能晚到。

调度器不持有任何模块级全局状态：由宿主实例化并传引用。
"""

from __future__ import annotations

import asyncio
import functools
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Callable, Mapping

from nonebot import logger

from . import config
from .events import (
    CHUNK_DELIVERED,
    TYPING_INTERRUPTED,
    TYPING_PAUSE,
    TYPING_RESUME,
    TYPING_START,
    TYPING_STOP,
    EventSink,
    TypingEvent,
    now_ms,
)
from .models import (
    STATUS_COMPLETED,
    STATUS_INTERRUPTED,
    STATUS_PAUSED,
    STATUS_RUNNING,
    TypingSimulation,
    TypingState,
)
from .mood import PersonaSnapshot
from .settings import TypingSettings, coerce_settings, default_settings as load_default_settings
from .simulation import (
    SimulationBuilder,
    TimelineEntry,
    adjust_for_difficulty,
    apply_settings,
    immediate_simulation,
    merge_chunks,
    rescale_remaining,
    timeline,
)
from .timers import LoopLike, SessionTimers

# 浮点误差容忍：同一时刻到期的步骤一次处理完
_DUE_TOLERANCE_MS = 0.5


@dataclass(frozen=True)
class _Step:
    fire_ms: float
    entry: TimelineEntry | None     # None = 结束


@dataclass
class _Run:
    state: TypingState
    settings: TypingSettings
    timers: SessionTimers
    steps: list[_Step] = field(default_factory=list)
    cursor: int = 0
    origin: float = 0.0             # elapsed=0 时的 loop.time()（秒）
    paused_elapsed_ms: float = 0.0


def _build_steps(sim: TypingSimulation) -> list[_Step]:
    steps: list[_Step] = []
    for entry in timeline(sim):
        # 块在“打完”时投递；停顿 / 回删在开始时记一笔
        fire = entry.end_ms if entry.kind == "chunk" else entry.start_ms
        steps.append(_Step(fire, entry))
    last = steps[-1].fire_ms if steps else 0.0
    steps.append(_Step(max(sim.total_duration_ms, last), None))
    return steps


def _guarded(default: Any) -> Callable:
    """公开操作的边界：内部异常只记日志，返回安全的默认值。"""

    def deco(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(self: "DeliveryScheduler", session_id: str, *args: Any, **kwargs: Any) -> Any:
            try:
                return fn(self, session_id, *args, **kwargs)
            except Exception:
                logger.exception(f"[typing] {fn.__name__} failed session={session_id}")
                return default

        return wrapper

    return deco


class DeliveryScheduler:
    def __init__(
        self,
        sink: EventSink | None = None,
        *,
        builder: SimulationBuilder | None = None,
        loop: LoopLike | None = None,
        default_settings: TypingSettings | None = None,
        completion_grace_ms: float | None = None,
    ):
        self.sink = sink
        self.builder = builder or SimulationBuilder()
        self.default_settings = default_settings or load_default_settings()
        self.completion_grace_ms = (
            config.TYPING_COMPLETION_GRACE_MS if completion_grace_ms is None else completion_grace_ms
        )
        self._loop = loop
        self._runs: dict[str, _Run] = {}

    @property
    def loop(self) -> LoopLike:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    # ============================================================ 控制接口

    def start(
        self,
        session_id: str,
        message: str,
        persona: str | PersonaSnapshot,
        settings: TypingSettings | Mapping[str, Any] | None = None,
        *,
        overrides: Mapping[str, Any] | None = None,
    ) -> TypingSimulation | None:
        """开始（或重新开始）一个会话的打字模拟，返回实际播放的时间线。"""
        try:
            return self._start(session_id, message, persona, settings, overrides)
        except Exception:
            logger.exception(f"[typing] start failed session={session_id}")
            return None

    def _start(
        self,
        session_id: str,
        message: str,
        persona: str | PersonaSnapshot,
        settings: TypingSettings | Mapping[str, Any] | None,
        overrides: Mapping[str, Any] | None,
    ) -> TypingSimulation:
        eff = coerce_settings(settings, self.default_settings)
        snapshot = persona if isinstance(persona, PersonaSnapshot) else PersonaSnapshot(str(persona or ""))
        text = message if isinstance(message, str) else ""

        sim = self._prepare_simulation(text, snapshot, eff, overrides)
        loop = self.loop

        # 新时间线准备好之后才替换旧的：参数出错时旧会话不受影响
        self.stop(session_id)

        state = TypingState(
            session_id=session_id,
            current_message=text,
            simulation=sim,
            start_time=now_ms(),
            difficulty_level=eff.difficulty_level,
            persona_id=snapshot.persona_id,
        )
        run = _Run(state=state, settings=eff, timers=SessionTimers(session_id, loop), origin=loop.time())
        run.steps = _build_steps(sim)
        self._runs[session_id] = run

        try:
            self._emit(run, TYPING_START, {
                "persona_id": snapshot.persona_id,
                "total_chunks": len(sim.chunks),
                "total_duration_ms": sim.total_duration_ms,
                "instant": eff.instant,
            })
            # 订阅者可能在回调里就 stop 了这个会话
            if self._runs.get(session_id) is run:
                self._arm_next(run)
        except Exception:
            self._discard(session_id, run)
            raise

        logger.info(
            f"[typing] start session={session_id} persona={snapshot.persona_id} len={len(text)} "
            f"chunks={len(sim.chunks)} total={sim.total_duration_ms:.0f}ms difficulty={eff.difficulty_level}"
        )
        return sim

    def _prepare_simulation(
        self,
        message: str,
        persona: PersonaSnapshot,
        settings: TypingSettings,
        overrides: Mapping[str, Any] | None,
    ) -> TypingSimulation:
        if settings.instant:
            return immediate_simulation(message)

        sim = self.builder.build(message, persona.persona_id, persona.mood_modifier, overrides)
        sim = adjust_for_difficulty(sim, settings.difficulty_level)
        sim = apply_settings(sim, settings.speed_multiplier, settings.pause_multiplier)
        if not settings.chunking_enabled:
            sim = merge_chunks(sim, message)
        return sim

    @_guarded(False)
    def pause(self, session_id: str) -> bool:
        run = self._runs.get(session_id)
        if run is None or run.state.status != STATUS_RUNNING:
            return False

        run.paused_elapsed_ms = self._elapsed_ms(run)
        run.timers.cancel_all()
        run.state.status = STATUS_PAUSED
        run.state.is_paused = True
        run.state.is_typing = False

        self._emit(run, TYPING_PAUSE, {"current_chunk_index": run.state.current_chunk_index})
        logger.info(f"[typing] paused session={session_id} at={run.paused_elapsed_ms:.0f}ms")
        return True

    @_guarded(False)
    def resume(self, session_id: str) -> bool:
        run = self._runs.get(session_id)
        if run is None or run.state.status != STATUS_PAUSED:
            return False

        run.origin = self.loop.time() - run.paused_elapsed_ms / 1000
        run.state.status = STATUS_RUNNING
        run.state.is_paused = False
        run.state.is_typing = True

        self._emit(run, TYPING_RESUME, {"current_chunk_index": run.state.current_chunk_index})
        if self._is_live(run):
            self._arm_next(run)
        logger.info(f"[typing] resumed session={session_id} from chunk={run.state.current_chunk_index}")
        return True

    @_guarded(False)
    def interrupt(self, session_id: str, reason: str | None = None) -> bool:
        run = self._runs.get(session_id)
        if run is None or run.state.status != STATUS_RUNNING:
            return False

        run.timers.cancel_all()
        run.state.status = STATUS_INTERRUPTED
        run.state.is_typing = False
        run.state.was_interrupted = True

        self._emit(run, TYPING_INTERRUPTED, {
            "reason": reason or "unknown",
            "current_chunk_index": run.state.current_chunk_index,
        })
        logger.info(f"[typing] interrupted session={session_id} reason={reason or '-'}")
        return True

    @_guarded(False)
    def stop(self, session_id: str) -> bool:
        run = self._runs.pop(session_id, None)
        if run is None:
            return False

        run.timers.cancel_all()
        was_active = run.state.status in (STATUS_RUNNING, STATUS_PAUSED)
        run.state.is_typing = False
        if was_active:
            self._emit(run, TYPING_STOP, {"reason": "stopped"})
        logger.info(f"[typing] stopped session={session_id} status={run.state.status}")
        return True

    @_guarded(False)
    def update_settings(self, session_id: str, partial: TypingSettings | Mapping[str, Any] | None) -> bool:
        """更新会话设置；只影响还没播放的部分。"""
        run = self._runs.get(session_id)
        if run is None:
            return False

        old = run.settings
        new = partial if isinstance(partial, TypingSettings) else old.merged(partial)
        run.settings = new

        status = run.state.status
        if status not in (STATUS_RUNNING, STATUS_PAUSED) or run.state.simulation.is_instant:
            logger.info(f"[typing] settings stored session={session_id} status={status}")
            return True

        speed_factor = new.speed_multiplier / old.speed_multiplier
        pause_factor = new.pause_multiplier / old.pause_multiplier
        if speed_factor == 1.0 and pause_factor == 1.0:
            return True

        elapsed = run.paused_elapsed_ms if status == STATUS_PAUSED else self._elapsed_ms(run)
        run.state.simulation = rescale_remaining(run.state.simulation, elapsed, speed_factor, pause_factor)
        run.steps = _build_steps(run.state.simulation)
        if status == STATUS_RUNNING:
            self._arm_next(run)

        logger.info(
            f"[typing] settings updated session={session_id} speed={new.speed_multiplier} "
            f"pause={new.pause_multiplier} total={run.state.simulation.total_duration_ms:.0f}ms"
        )
        return True

    # ============================================================ 查询接口

    def get_state(self, session_id: str) -> TypingState | None:
        run = self._runs.get(session_id)
        return replace(run.state) if run else None

    def is_typing(self, session_id: str) -> bool:
        run = self._runs.get(session_id)
        return run is not None and run.state.is_typing

    def active_sessions(self) -> list[str]:
        return [sid for sid, run in self._runs.items() if run.state.status in (STATUS_RUNNING, STATUS_PAUSED)]

    def stats(self) -> dict[str, int]:
        statuses = [run.state.status for run in self._runs.values()]
        return {
            "sessions": len(self._runs),
            "running": statuses.count(STATUS_RUNNING),
            "paused": statuses.count(STATUS_PAUSED),
            "timers": sum(len(run.timers) for run in self._runs.values()),
        }

    def health(self) -> dict[str, Any]:
        """按待执行定时器总数给出健康状态：healthy / warning / critical。"""
        timers = self.stats()["timers"]
        limit = config.TYPING_MAX_TIMERS
        status, issues = "healthy", []
        if timers > limit:
            status = "critical"
            issues.append(f"timer limit exceeded: {timers}")
        elif timers > limit * 0.8:
            status = "warning"
            issues.append(f"high timer count: {timers}")
        if issues:
            logger.warning(f"[typing] health {status}: {issues}")
        return {"status": status, "timers": timers, "limit": limit, "issues": issues}

    def shutdown(self) -> None:
        """停止所有会话（进程退出时调用）。"""
        sessions = list(self._runs)
        for session_id in sessions:
            self.stop(session_id)
        if sessions:
            logger.info(f"[typing] shutdown stopped {len(sessions)} session(s)")

    # ============================================================ 内部

    def _elapsed_ms(self, run: _Run) -> float:
        return (self.loop.time() - run.origin) * 1000

    def _arm_next(self, run: _Run) -> None:
        if run.cursor >= len(run.steps):
            return
        delay = run.steps[run.cursor].fire_ms - self._elapsed_ms(run)
        run.timers.arm("step", delay, lambda: self._on_step(run))

    def _is_live(self, run: _Run) -> bool:
        return self._runs.get(run.state.session_id) is run and run.state.status == STATUS_RUNNING

    def _on_step(self, run: _Run) -> None:
        session_id = run.state.session_id
        try:
            if not self._is_live(run):
                return

            # 定时器就是为 cursor 这一步登记的，先无条件处理，再顺带处理同时到期的
            self._execute(run, run.steps[run.cursor])
            elapsed = self._elapsed_ms(run)
            while self._is_live(run) and run.cursor < len(run.steps):
                if run.steps[run.cursor].fire_ms > elapsed + _DUE_TOLERANCE_MS:
                    break
                self._execute(run, run.steps[run.cursor])

            if self._is_live(run):
                self._arm_next(run)
        except Exception:
            logger.exception(f"[typing] step failed session={session_id}, dropping session")
            self._discard(session_id, run)

    def _execute(self, run: _Run, step: _Step) -> None:
        run.cursor += 1
        entry = step.entry
        if entry is None:
            self._complete(run)
            return

        sim = run.state.simulation
        session_id = run.state.session_id
        if entry.kind == "chunk":
            chunk = sim.chunks[entry.index]
            run.state.current_chunk_index = entry.index + 1
            self._emit(run, CHUNK_DELIVERED, {
                "chunk": asdict(chunk),
                "index": entry.index,
                "is_last": entry.index == len(sim.chunks) - 1,
                "total_chunks": len(sim.chunks),
            })
            logger.debug(f"[typing] chunk session={session_id} index={entry.index} text={chunk.text!r}")
        elif entry.kind == "pause":
            pause = sim.pause_points[entry.index]
            logger.debug(
                f"[typing] pause session={session_id} reason={pause.reason} duration={pause.duration_ms:.0f}ms"
            )
        else:
            backtrack = sim.backtrack_events[entry.index]
            logger.debug(
                f"[typing] backtrack session={session_id} deleted={backtrack.characters_deleted} "
                f"retype={backtrack.correction_text!r}"
            )

    def _complete(self, run: _Run) -> None:
        session_id = run.state.session_id
        run.state.status = STATUS_COMPLETED
        run.state.is_typing = False

        self._emit(run, TYPING_STOP, {"reason": "completed"})
        logger.info(
            f"[typing] completed session={session_id} duration={now_ms() - run.state.start_time}ms"
        )
        if self._runs.get(session_id) is run:
            run.timers.arm("purge", self.completion_grace_ms, lambda: self._purge(run))

    def _purge(self, run: _Run) -> None:
        session_id = run.state.session_id
        if self._runs.get(session_id) is run:
            del self._runs[session_id]
            logger.debug(f"[typing] purged session={session_id}")

    def _discard(self, session_id: str, run: _Run | None = None) -> None:
        """出错兜底：静默移除会话（不再发任何事件）。"""
        current = self._runs.get(session_id)
        if current is None or (run is not None and current is not run):
            return
        current.timers.cancel_all()
        del self._runs[session_id]

    def _emit(self, run: _Run, event_type: str, data: dict[str, Any] | None = None) -> None:
        event = TypingEvent(type=event_type, session_id=run.state.session_id, data=data or {})
        logger.debug(f"[typing] event {event.type} session={event.session_id}")
        if self.sink is None:
            return
        try:
            self.sink(event)
        except Exception:
            logger.exception(f"[typing] sink failed on {event.type} session={event.session_id}")