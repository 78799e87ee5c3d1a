"""打字模拟数据模型。

- `TypingProfile`：人设的打字特征（只读，按 persona id 查表）。
- `MessageComplexity`：消息复杂度分析结果。
- `TypingSimulation`：一次完整的“打字时间线”（分块 + 停顿 + 回删），不可变。
- `TypingState`：会话运行时状态（可变，由调度器持有）。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

ComplexityLevel = Literal["simple", "moderate", "complex"]
PauseReason = Literal["thinking", "natural", "correction", "emotional"]
DifficultyLevel = Literal["beginner", "intermediate", "advanced"]

# 会话状态机
STATUS_RUNNING = "running"
STATUS_PAUSED = "paused"
STATUS_INTERRUPTED = "interrupted"
STATUS_COMPLETED = "completed"

# “无动画”哨兵速度：即时投递时写进 chunk.wpm
INSTANT_WPM = 999.0


@dataclass(frozen=True)
class TypingProfile:
    """人设打字特征"""

    base_wpm: float
    min_wpm: float
    max_wpm: float
    pause_frequency: float          # 0-1，每个词后停顿的概率
    pause_multiplier: float         # 停顿时长倍数
    backtrack_chance: float         # 0-1，每个词后回删重打的概率
    burst_typing: bool              # 爆发式打字 vs 匀速
    thinking_pause_multiplier: float  # 复杂消息开头的思考停顿倍数
    anger_driven: bool = False      # 情绪激动时加速（否则减速）


@dataclass(frozen=True)
class MessageComplexity:
    word_count: int
    technical_terms: int
    emotional_intensity: float      # 0-1
    question_count: int
    complexity: ComplexityLevel


@dataclass(frozen=True)
class TypingChunk:
    text: str
    start_offset_ms: float
    duration_ms: float
    wpm: float
    position: int = 0               # 在原消息中的字符位置


@dataclass(frozen=True)
class PausePoint:
    position: int
    duration_ms: float
    reason: PauseReason
    start_offset_ms: float = 0.0


@dataclass(frozen=True)
class BacktrackEvent:
    position: int
    characters_deleted: int
    correction_text: str
    duration_ms: float
    start_offset_ms: float = 0.0


@dataclass(frozen=True)
class TypingSimulation:
    chunks: tuple[TypingChunk, ...] = ()
    pause_points: tuple[PausePoint, ...] = ()
    backtrack_events: tuple[BacktrackEvent, ...] = ()
    total_duration_ms: float = 0.0

    @property
    def is_instant(self) -> bool:
        return self.total_duration_ms == 0 and any(c.wpm == INSTANT_WPM for c in self.chunks)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_duration_ms": self.total_duration_ms,
            "chunks": [
                {
                    "text": c.text,
                    "start_offset_ms": c.start_offset_ms,
                    "duration_ms": c.duration_ms,
                    "wpm": c.wpm,
                    "position": c.position,
                }
                for c in self.chunks
            ],
            "pause_points": [
                {
                    "position": p.position,
                    "duration_ms": p.duration_ms,
                    "reason": p.reason,
                    "start_offset_ms": p.start_offset_ms,
                }
                for p in self.pause_points
            ],
            "backtrack_events": [
                {
                    "position": b.position,
                    "characters_deleted": b.characters_deleted,
                    "correction_text": b.correction_text,
                    "duration_ms": b.duration_ms,
                    "start_offset_ms": b.start_offset_ms,
                }
                for b in self.backtrack_events
            ],
        }


EMPTY_SIMULATION = TypingSimulation()


@dataclass
class TypingState:
    """单个会话的运行时状态（同一 session_id 同时最多一个）"""

    session_id: str
    current_message: str
    simulation: TypingSimulation
    start_time: int                 # epoch ms
    status: str = STATUS_RUNNING
    is_typing: bool = True
    current_chunk_index: int = 0    # 已投递的块数 = 下一个要投递的块下标
    is_paused: bool = False
    was_interrupted: bool = False
    difficulty_level: DifficultyLevel = "intermediate"
    persona_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "status": self.status,
            "is_typing": self.is_typing,
            "current_message": self.current_message,
            "start_time": self.start_time,
            "current_chunk_index": self.current_chunk_index,
            "total_chunks": len(self.simulation.chunks),
            "is_paused": self.is_paused,
            "was_interrupted": self.was_interrupted,
            "difficulty_level": self.difficulty_level,
            "persona_id": self.persona_id,
            "total_duration_ms": self.simulation.total_duration_ms,
        }
