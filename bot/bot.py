"""NoneBot 启动入口（运行主进程）。

职责：
- 初始化 NoneBot 框架与驱动（`nonebot.init()`）。
- 扫描并加载 `plugins/` 下的插件模块（本项目主要是 `persona_typing`）。
- 创建进程内唯一的打字调度器和事件总线，传输层插件通过 `typing_events.subscribe()` 取事件。
- 进程退出时停止所有会话，避免留下挂起的定时器。
"""

import nonebot

# 1. 初始化 NoneBot
nonebot.init()
driver = nonebot.get_driver()

# 2. 加载插件
nonebot.load_plugins("plugins")

# 3. 宿主持有调度器（插件本身不带全局状态）
persona_typing = nonebot.require("persona_typing")

typing_events = persona_typing.EventHub()
typing_scheduler = persona_typing.DeliveryScheduler(typing_events)


@driver.on_shutdown
async def _stop_typing_sessions() -> None:
    typing_scheduler.shutdown()


if __name__ == "__main__":
    nonebot.run()
