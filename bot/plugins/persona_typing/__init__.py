"""NoneBot 插件入口（persona_typing）。

客服培训模拟器里“顾客人设打字”的核心：
- `complexity` / `profiles` / `simulation`：为一条消息生成打字时间线（分块、停顿、回删）；
- `delivery`：按时间线把消息逐块“打”出来，支持暂停 / 恢复 / 打断，多会话并发互不影响；
- `events`：有序事件流，交给传输层原样转发给前端。

本包导入时没有副作用（不注册 handler、不依赖 `nonebot.init()`），
调度器由宿主（`bot/bot.py`）实例化。
"""

from nonebot.plugin import PluginMetadata

from .complexity import analyze_message_complexity
from .delivery import DeliveryScheduler
from .events import EventHub, EventQueue, TypingEvent
from .models import (
    INSTANT_WPM,
    BacktrackEvent,
    MessageComplexity,
    PausePoint,
    TypingChunk,
    TypingProfile,
    TypingSimulation,
    TypingState,
)
from .mood import PersonaSnapshot, mood_modifier
from .profiles import DEFAULT_TYPING_PROFILE, TypingProfileResolver
from .settings import TypingSettings
from .simulation import (
    SimulationBuilder,
    adjust_for_difficulty,
    apply_settings,
    immediate_simulation,
)

__plugin_meta__ = PluginMetadata(
    name="人设打字模拟",
    description="按顾客人设模拟打字节奏，并逐块投递消息",
    usage="由宿主创建 DeliveryScheduler，调用 start/pause/resume/interrupt/stop",
)

__all__ = [
    "INSTANT_WPM",
    "DEFAULT_TYPING_PROFILE",
    "BacktrackEvent",
    "DeliveryScheduler",
    "EventHub",
    "EventQueue",
    "MessageComplexity",
    "PausePoint",
    "PersonaSnapshot",
    "SimulationBuilder",
    "TypingChunk",
    "TypingEvent",
    "TypingProfile",
    "TypingProfileResolver",
    "TypingSettings",
    "TypingSimulation",
    "TypingState",
    "adjust_for_difficulty",
    "analyze_message_complexity",
    "apply_settings",
    "immediate_simulation",
    "mood_modifier",
]
