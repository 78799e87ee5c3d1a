"""打字模拟配置。

所有配置项都从环境变量读取（`.env` 由 NoneBot 加载），读不到或格式错误时回退默认值。
"""

from __future__ import annotations

import os


def _env_int(name: str, default: int) -> int:
    try:
        return int((os.getenv(name) or "").strip() or default)
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float((os.getenv(name) or "").strip() or default)
    except Exception:
        return default


def _env_bool(name: str, default: bool) -> bool:
    v = (os.getenv(name) or "").strip().lower()
    if not v:
        return default
    return v in ("1", "true", "yes", "on")


def _env_str(name: str, default: str) -> str:
    return (os.getenv(name) or "").strip() or default


# === 会话默认设置 ===
TYPING_ENABLED = _env_bool("TYPING_ENABLED", True)
TYPING_DEFAULT_SPEED_MULTIPLIER = _env_float("TYPING_DEFAULT_SPEED_MULTIPLIER", 1.0)
TYPING_DEFAULT_PAUSE_MULTIPLIER = _env_float("TYPING_DEFAULT_PAUSE_MULTIPLIER", 1.0)
TYPING_DEFAULT_DIFFICULTY = _env_str("TYPING_DEFAULT_DIFFICULTY", "intermediate")

# 设置项的合法范围（超出会被夹到边界）
SPEED_MULTIPLIER_RANGE = (0.5, 2.0)
PAUSE_MULTIPLIER_RANGE = (0.5, 2.0)

# === 调度 ===
# 自然结束后保留状态的时间，方便前端最后一次查询
TYPING_COMPLETION_GRACE_MS = _env_int("TYPING_COMPLETION_GRACE_MS", 1000)

# EventQueue 默认容量（0 = 不限）
TYPING_EVENT_QUEUE_SIZE = _env_int("TYPING_EVENT_QUEUE_SIZE", 0)

# 定时器总数告警阈值（超过 80% 为 warning，超过上限为 critical）
TYPING_MAX_TIMERS = max(1, _env_int("TYPING_MAX_TIMERS", 1000))
