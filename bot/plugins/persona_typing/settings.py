"""会话级打字设置（校验 + 默认值）。

前端原样传来的 camelCase 字段（`speedMultiplier` 等）和 snake_case 都接受；
倍数超出范围时夹到边界，而不是报错。
"""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from . import config
from .models import DifficultyLevel

DIFFICULTY_LEVELS = ("beginner", "intermediate", "advanced")


class TypingSettings(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, validate_default=True)

    enabled: bool = Field(default=config.TYPING_ENABLED, description="关闭后直接整条投递")
    speed_multiplier: float = Field(default=config.TYPING_DEFAULT_SPEED_MULTIPLIER, description="打字速度倍数")
    pause_multiplier: float = Field(default=config.TYPING_DEFAULT_PAUSE_MULTIPLIER, description="停顿时长倍数")
    chunking_enabled: bool = Field(default=True, description="按词分块投递；关闭则打完整条再投递")
    accessibility_mode: bool = Field(default=False, description="无障碍模式：不播放打字动画")
    difficulty_level: DifficultyLevel = Field(default="intermediate", description="培训难度")

    @field_validator("speed_multiplier", mode="before")
    @classmethod
    def _clamp_speed(cls, v: Any) -> float:
        lo, hi = config.SPEED_MULTIPLIER_RANGE
        return _clamp_multiplier(v, lo, hi)

    @field_validator("pause_multiplier", mode="before")
    @classmethod
    def _clamp_pause(cls, v: Any) -> float:
        lo, hi = config.PAUSE_MULTIPLIER_RANGE
        return _clamp_multiplier(v, lo, hi)

    @field_validator("difficulty_level", mode="before")
    @classmethod
    def _normalize_difficulty(cls, v: Any) -> str:
        s = str(v or "").strip().lower()
        return s if s in DIFFICULTY_LEVELS else "intermediate"

    @property
    def instant(self) -> bool:
        """是否跳过打字动画（禁用或无障碍模式）"""
        return not self.enabled or self.accessibility_mode

    def merged(self, partial: Mapping[str, Any] | None) -> "TypingSettings":
        """返回合并了部分更新后的新设置（重新校验）。"""
        data = self.model_dump()
        for key, value in (partial or {}).items():
            data[_field_name(key)] = value
        return TypingSettings.model_validate(data)


def _clamp_multiplier(v: Any, lo: float, hi: float) -> float:
    try:
        f = float(v)
    except (TypeError, ValueError):
        return 1.0
    if f != f:  # NaN
        return 1.0
    return max(lo, min(hi, f))


_ALIASES = {to_camel(name): name for name in TypingSettings.model_fields}


def _field_name(key: str) -> str:
    return _ALIASES.get(key, key)


def default_settings() -> TypingSettings:
    return TypingSettings(difficulty_level=config.TYPING_DEFAULT_DIFFICULTY)


def coerce_settings(value: TypingSettings | Mapping[str, Any] | None, base: TypingSettings | None = None) -> TypingSettings:
    """把 None / dict / TypingSettings 统一成 TypingSettings。"""
    if isinstance(value, TypingSettings):
        return value
    return (base or default_settings()).merged(value)
