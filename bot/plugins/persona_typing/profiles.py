"""人设打字特征表。

- 内置 5 个客服培训人设的打字特征（速度区间 / 停顿 / 回删倾向）。
- 未知 persona id 返回默认特征，而不是报错：上游人设库随时可能新增人设。
- `TypingProfileResolver` 允许宿主在内置表之上注册额外人设。
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, NamedTuple

from nonebot import logger

from .models import TypingProfile

PERSONA_TYPING_PROFILES: Mapping[str, TypingProfile] = MappingProxyType({
    "office_worker": TypingProfile(
        base_wpm=52,
        min_wpm=45,
        max_wpm=60,
        pause_frequency=0.3,
        pause_multiplier=1.0,
        backtrack_chance=0.1,
        burst_typing=False,
        thinking_pause_multiplier=1.2,
    ),
    "frustrated_user": TypingProfile(
        base_wpm=30,
        min_wpm=25,
        max_wpm=35,
        pause_frequency=0.6,
        pause_multiplier=1.8,
        backtrack_chance=0.25,
        burst_typing=True,
        thinking_pause_multiplier=2.0,
        anger_driven=True,
    ),
    "patient_retiree": TypingProfile(
        base_wpm=25,
        min_wpm=20,
        max_wpm=30,
        pause_frequency=0.8,
        pause_multiplier=2.5,
        backtrack_chance=0.05,
        burst_typing=False,
        thinking_pause_multiplier=3.0,
    ),
    "new_employee": TypingProfile(
        base_wpm=40,
        min_wpm=35,
        max_wpm=45,
        pause_frequency=0.5,
        pause_multiplier=1.5,
        backtrack_chance=0.2,
        burst_typing=True,
        thinking_pause_multiplier=2.2,
    ),
    "executive": TypingProfile(
        base_wpm=58,
        min_wpm=50,
        max_wpm=65,
        pause_frequency=0.2,
        pause_multiplier=0.8,
        backtrack_chance=0.05,
        burst_typing=False,
        thinking_pause_multiplier=0.9,
    ),
})

# 未知人设的兜底：普通人中速打字
DEFAULT_TYPING_PROFILE = TypingProfile(
    base_wpm=40,
    min_wpm=30,
    max_wpm=50,
    pause_frequency=0.4,
    pause_multiplier=1.2,
    backtrack_chance=0.1,
    burst_typing=False,
    thinking_pause_multiplier=1.5,
)


class TypingSpeed(NamedTuple):
    min: float
    max: float
    avg: float


def _check_profile(persona_id: str, profile: TypingProfile) -> None:
    if not (0 < profile.min_wpm <= profile.base_wpm <= profile.max_wpm):
        raise ValueError(
            f"invalid typing profile {persona_id!r}: expected 0 < min_wpm <= base_wpm <= max_wpm, "
            f"got {profile.min_wpm}/{profile.base_wpm}/{profile.max_wpm}"
        )
    if not (0 <= profile.pause_frequency <= 1 and 0 <= profile.backtrack_chance <= 1):
        raise ValueError(f"invalid typing profile {persona_id!r}: probabilities must be within [0, 1]")


class TypingProfileResolver:
    """persona id → TypingProfile（精确匹配，找不到给默认值）"""

    def __init__(
        self,
        extra: Mapping[str, TypingProfile] | None = None,
        *,
        default: TypingProfile = DEFAULT_TYPING_PROFILE,
    ):
        self._default = default
        self._profiles: dict[str, TypingProfile] = dict(PERSONA_TYPING_PROFILES)
        for persona_id, profile in (extra or {}).items():
            self.register(persona_id, profile)

    def register(self, persona_id: str, profile: TypingProfile) -> None:
        _check_profile(persona_id, profile)
        if persona_id in self._profiles:
            logger.info(f"[typing][profiles] override persona={persona_id}")
        self._profiles[persona_id] = profile

    def known_personas(self) -> list[str]:
        return sorted(self._profiles)

    def resolve(self, persona_id: str | None) -> TypingProfile:
        profile = self._profiles.get(str(persona_id or ""))
        if profile is None:
            logger.debug(f"[typing][profiles] unknown persona={persona_id!r}, using default profile")
            return self._default
        return profile

    def typing_speed(self, persona_id: str | None) -> TypingSpeed:
        """返回人设的打字速度区间 (min, max, avg)。"""
        p = self.resolve(persona_id)
        return TypingSpeed(min=p.min_wpm, max=p.max_wpm, avg=p.base_wpm)
