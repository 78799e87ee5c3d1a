"""情绪 → 打字速度系数。

人设情绪本身由上游人设引擎维护，这里只负责把（情绪标签、挫败感、技术自信）
折算成一个速度系数 mood modifier，交给 SimulationBuilder 使用。

- 情绪标签：生气/不耐烦打得快，感激/担心打得慢。
- 挫败感 0-10：以 5 为中点，每点 ±5%。
- 技术自信 0-10：0 → ×0.8，10 → ×1.2。
"""

from __future__ import annotations

from dataclasses import dataclass

MOOD_FACTORS: dict[str, float] = {
    "angry": 1.3,
    "frustrated": 1.1,
    "impatient": 1.2,
    "concerned": 0.9,
    "neutral": 1.0,
    "calm": 0.95,
    "pleased": 1.05,
    "grateful": 0.9,
}


def clamp(n: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, n))


def mood_modifier(mood: str | None, frustration_level: float = 5, technical_confidence: float = 5) -> float:
    base = MOOD_FACTORS.get((mood or "").strip().lower(), 1.0)
    frustration = 1 + (clamp(frustration_level, 0, 10) - 5) * 0.05
    confidence = 0.8 + (clamp(technical_confidence, 0, 10) / 10) * 0.4
    return base * frustration * confidence


@dataclass(frozen=True)
class PersonaSnapshot:
    """调度器需要的人设快照：persona id + 已折算好的情绪系数"""

    persona_id: str
    mood_modifier: float = 1.0

    @classmethod
    def from_state(
        cls,
        persona_id: str,
        mood: str | None = None,
        frustration_level: float = 5,
        technical_confidence: float = 5,
    ) -> "PersonaSnapshot":
        return cls(persona_id, mood_modifier(mood, frustration_level, technical_confidence))
