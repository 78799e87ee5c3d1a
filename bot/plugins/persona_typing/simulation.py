"""打字时间线生成（SimulationBuilder）+ 纯函数变换。

生成流程：
1. 查人设打字特征，叠加调用方覆盖项；
2. 分析消息复杂度；
3. 速度 = 基础 WPM × 情绪系数 × 复杂度系数（× 情绪激动分支），再夹到人设区间；
4. 按“空白保留”切词，每个词一个 chunk，时长带 ±20% 抖动；
5. 复杂消息开头插入思考停顿，词后按概率插入停顿 / 回删重打。

所有随机数都来自可注入的 `rng`（`random.Random` 兼容：`random()` / `uniform()`），
测试里传固定随机源即可得到确定的时间线。

变换（难度 / 用户设置 / 无障碍）都返回新的 TypingSimulation，从不原地修改。
"""

from __future__ import annotations

import math
import random
import re
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Mapping, Protocol

from nonebot import logger

from .complexity import analyze_message_complexity
from .models import (
    EMPTY_SIMULATION,
    INSTANT_WPM,
    BacktrackEvent,
    MessageComplexity,
    PausePoint,
    PauseReason,
    TypingChunk,
    TypingProfile,
    TypingSimulation,
)
from .profiles import TypingProfileResolver

CHARS_PER_WORD = 5
THINKING_PAUSE_MS = 1000
BASE_PAUSE_MS = 500

COMPLEXITY_SPEED = {"simple": 1.0, "moderate": 0.9, "complex": 0.8}
DIFFICULTY_SPEED = {"beginner": 0.7, "intermediate": 1.0, "advanced": 1.3}

# 词级停顿规则
_PAUSE_TECHNICAL_RE = re.compile(r"\b(server|database|network|password|configure)\b", re.I)
_PAUSE_URGENT_RE = re.compile(r"\b(urgent|help|broken|error)\b", re.I)
_REASON_THINKING_RE = re.compile(r"\b(server|database|network|configure)\b", re.I)
_REASON_EMOTIONAL_RE = re.compile(r"\b(urgent|frustrated|angry)\b", re.I)

_TOKEN_SPLIT_RE = re.compile(r"(\s+)")

_PROFILE_FIELDS = {f.name for f in fields(TypingProfile)}


class RandomSource(Protocol):
    def random(self) -> float: ...

    def uniform(self, a: float, b: float) -> float: ...


def _chunk_wpm(length: int, duration_ms: float) -> float:
    if duration_ms <= 0:
        return INSTANT_WPM
    return (length / CHARS_PER_WORD) / (duration_ms / 60000)


class SimulationBuilder:
    def __init__(self, resolver: TypingProfileResolver | None = None, rng: RandomSource | None = None):
        self.resolver = resolver or TypingProfileResolver()
        self.rng = rng or random.Random()

    # ------------------------------------------------------------ public
    def build(
        self,
        message: str,
        persona_id: str,
        mood_modifier: float = 1.0,
        overrides: Mapping[str, Any] | None = None,
    ) -> TypingSimulation:
        if not isinstance(message, str) or not message.strip():
            return EMPTY_SIMULATION

        profile = self._apply_overrides(self.resolver.resolve(persona_id), overrides)
        complexity = analyze_message_complexity(message)
        wpm = self.adjusted_wpm(profile, complexity, mood_modifier)

        sim = self._simulate(message, profile, wpm, complexity)
        logger.debug(
            f"[typing][builder] persona={persona_id} wpm={wpm:.1f} complexity={complexity.complexity} "
            f"chunks={len(sim.chunks)} pauses={len(sim.pause_points)} "
            f"backtracks={len(sim.backtrack_events)} total={sim.total_duration_ms:.0f}ms"
        )
        return sim

    @staticmethod
    def adjusted_wpm(profile: TypingProfile, complexity: MessageComplexity, mood_modifier: float = 1.0) -> float:
        """情绪 + 复杂度调整后的打字速度，夹在人设区间内。"""
        try:
            mood = float(mood_modifier)
        except (TypeError, ValueError):
            mood = math.nan
        if not math.isfinite(mood) or mood <= 0:
            logger.warning(f"[typing][builder] invalid mood modifier {mood_modifier!r}, using 1.0")
            mood = 1.0

        wpm = profile.base_wpm * mood * COMPLEXITY_SPEED[complexity.complexity]
        if complexity.emotional_intensity > 0.5:
            # 激动时：易怒型加速，其他人设变慢
            wpm *= 1.2 if profile.anger_driven else 0.85

        wpm = max(profile.min_wpm, min(profile.max_wpm, wpm))
        return max(wpm, 1.0)

    # ----------------------------------------------------------- helpers
    @staticmethod
    def _apply_overrides(profile: TypingProfile, overrides: Mapping[str, Any] | None) -> TypingProfile:
        if not overrides:
            return profile
        known = {k: v for k, v in overrides.items() if k in _PROFILE_FIELDS}
        unknown = sorted(set(overrides) - set(known))
        if unknown:
            logger.warning(f"[typing][builder] ignoring unknown profile overrides: {unknown}")
        return replace(profile, **known) if known else profile

    def _simulate(
        self,
        message: str,
        profile: TypingProfile,
        wpm: float,
        complexity: MessageComplexity,
    ) -> TypingSimulation:
        chunks: list[TypingChunk] = []
        pauses: list[PausePoint] = []
        backtracks: list[BacktrackEvent] = []

        ms_per_char = 60000 / (wpm * CHARS_PER_WORD)
        clock = 0.0
        position = 0

        # 非简单消息：开头先“想一想”
        if complexity.complexity != "simple":
            thinking = THINKING_PAUSE_MS * profile.thinking_pause_multiplier
            pauses.append(PausePoint(position=0, duration_ms=thinking, reason="thinking", start_offset_ms=0.0))
            clock += thinking

        for token in _TOKEN_SPLIT_RE.split(message):
            if not token.strip():
                position += len(token)
                continue

            duration = len(token) * ms_per_char * self.rng.uniform(0.8, 1.2)
            chunks.append(TypingChunk(
                text=token,
                start_offset_ms=clock,
                duration_ms=duration,
                wpm=_chunk_wpm(len(token), duration),
                position=position,
            ))
            clock += duration
            position += len(token)

            if self.rng.random() < profile.pause_frequency:
                pause = PausePoint(
                    position=position,
                    duration_ms=self._pause_duration(profile, token),
                    reason=self._pause_reason(token, complexity),
                    start_offset_ms=clock,
                )
                pauses.append(pause)
                clock += pause.duration_ms

            if self.rng.random() < profile.backtrack_chance:
                deleted = 1 + math.floor(self.rng.random() * min(3, len(token)))
                backtrack = BacktrackEvent(
                    position=position - deleted,
                    characters_deleted=deleted,
                    correction_text=token[-deleted:],
                    duration_ms=self.rng.uniform(200, 500),
                    start_offset_ms=clock,
                )
                backtracks.append(backtrack)
                clock += backtrack.duration_ms

        return TypingSimulation(
            chunks=tuple(chunks),
            pause_points=tuple(pauses),
            backtrack_events=tuple(backtracks),
            total_duration_ms=clock,
        )

    def _pause_duration(self, profile: TypingProfile, token: str) -> float:
        pause = BASE_PAUSE_MS * profile.pause_multiplier
        if _PAUSE_TECHNICAL_RE.search(token):
            pause *= 1.5
        if _PAUSE_URGENT_RE.search(token):
            pause *= 0.7
        return float(round(pause * (0.5 + self.rng.random())))

    @staticmethod
    def _pause_reason(token: str, complexity: MessageComplexity) -> PauseReason:
        if _REASON_THINKING_RE.search(token):
            return "thinking"
        if _REASON_EMOTIONAL_RE.search(token):
            return "emotional"
        if complexity.technical_terms > 3:
            return "thinking"
        return "natural"


# === Timeline ===

_KIND_RANK = {"pause": 0, "backtrack": 1, "chunk": 2}


@dataclass(frozen=True)
class TimelineEntry:
    kind: str           # pause / backtrack / chunk
    index: int          # 在对应列表中的下标
    start_ms: float
    duration_ms: float

    @property
    def end_ms(self) -> float:
        return self.start_ms + self.duration_ms


def timeline(sim: TypingSimulation) -> list[TimelineEntry]:
    """按时间顺序展开的停顿 / 回删 / 打字段。"""
    entries = [TimelineEntry("pause", i, p.start_offset_ms, p.duration_ms) for i, p in enumerate(sim.pause_points)]
    entries += [
        TimelineEntry("backtrack", i, b.start_offset_ms, b.duration_ms) for i, b in enumerate(sim.backtrack_events)
    ]
    entries += [TimelineEntry("chunk", i, c.start_offset_ms, c.duration_ms) for i, c in enumerate(sim.chunks)]
    entries.sort(key=lambda e: (e.start_ms, _KIND_RANK[e.kind], e.index))
    return entries


def _retime(sim: TypingSimulation, new_duration: Callable[[TimelineEntry], float]) -> TypingSimulation:
    """按时间线顺序重新累加偏移量；new_duration 给出每一段的新时长。"""
    chunks = list(sim.chunks)
    pauses = list(sim.pause_points)
    backtracks = list(sim.backtrack_events)

    clock = 0.0
    for entry in timeline(sim):
        duration = new_duration(entry)
        if entry.kind == "chunk":
            c = chunks[entry.index]
            wpm = c.wpm if c.wpm == INSTANT_WPM or duration <= 0 else c.wpm * (c.duration_ms / duration)
            chunks[entry.index] = replace(c, start_offset_ms=clock, duration_ms=duration, wpm=wpm)
        elif entry.kind == "pause":
            pauses[entry.index] = replace(pauses[entry.index], start_offset_ms=clock, duration_ms=duration)
        else:
            backtracks[entry.index] = replace(backtracks[entry.index], start_offset_ms=clock, duration_ms=duration)
        clock += duration

    return TypingSimulation(
        chunks=tuple(chunks),
        pause_points=tuple(pauses),
        backtrack_events=tuple(backtracks),
        total_duration_ms=clock,
    )


# === 纯函数变换 ===

def adjust_for_difficulty(sim: TypingSimulation, level: str) -> TypingSimulation:
    """难度缩放：beginner 放慢、advanced 加快，intermediate 原样返回。"""
    multiplier = DIFFICULTY_SPEED.get(level)
    if multiplier is None:
        logger.warning(f"[typing] unknown difficulty level {level!r}, treating as intermediate")
        return sim
    if multiplier == 1.0:
        return sim
    return _retime(sim, lambda e: e.duration_ms / multiplier)


def apply_settings(sim: TypingSimulation, speed_multiplier: float = 1.0, pause_multiplier: float = 1.0) -> TypingSimulation:
    """用户设置：打字段 ÷ 速度倍数，停顿 × 停顿倍数。"""
    if speed_multiplier == 1.0 and pause_multiplier == 1.0:
        return sim
    return _retime(sim, lambda e: _scaled(e, e.duration_ms, speed_multiplier, pause_multiplier))


def rescale_remaining(
    sim: TypingSimulation,
    elapsed_ms: float,
    speed_factor: float = 1.0,
    pause_factor: float = 1.0,
) -> TypingSimulation:
    """只对 elapsed_ms 之后的部分重新计时（已经“打完”的部分不动）。"""
    if speed_factor == 1.0 and pause_factor == 1.0:
        return sim

    def _remaining(e: TimelineEntry) -> float:
        if e.end_ms <= elapsed_ms:
            return e.duration_ms
        done = max(0.0, elapsed_ms - e.start_ms)
        return done + _scaled(e, e.duration_ms - done, speed_factor, pause_factor)

    return _retime(sim, _remaining)


def _scaled(entry: TimelineEntry, duration: float, speed: float, pause: float) -> float:
    if entry.kind == "pause":
        return duration * pause
    return duration / speed


def immediate_simulation(message: str) -> TypingSimulation:
    """无障碍 / 关闭打字时：整条消息一个块，零时长，wpm 用哨兵值。"""
    if not isinstance(message, str) or not message.strip():
        return EMPTY_SIMULATION
    return TypingSimulation(
        chunks=(TypingChunk(text=message, start_offset_ms=0.0, duration_ms=0.0, wpm=INSTANT_WPM, position=0),),
        total_duration_ms=0.0,
    )


def merge_chunks(sim: TypingSimulation, message: str) -> TypingSimulation:
    """关闭分块时：照常“打字”，打完整条一次性投递。"""
    if len(sim.chunks) <= 1:
        return sim
    total = sim.total_duration_ms
    text = message if isinstance(message, str) else "".join(c.text for c in sim.chunks)
    return TypingSimulation(
        chunks=(TypingChunk(
            text=text,
            start_offset_ms=0.0,
            duration_ms=total,
            wpm=_chunk_wpm(len(text), total),
            position=0,
        ),),
        total_duration_ms=total,
    )
