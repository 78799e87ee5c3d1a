from bot.plugins.persona_typing.timers import SessionTimers


def test_timer_fires_once_and_forgets_itself(loop):
    fired = []
    timers = SessionTimers("s1", loop)
    timers.arm("step", 100, lambda: fired.append(loop.time()))
    assert "step" in timers

    loop.advance(150)
    assert fired == [0.1]
    assert len(timers) == 0


def test_rearming_replaces_previous_timer(loop):
    fired = []
    timers = SessionTimers("s1", loop)
    timers.arm("step", 100, lambda: fired.append("first"))
    timers.arm("step", 200, lambda: fired.append("second"))

    loop.advance(500)
    assert fired == ["second"]


def test_negative_delay_fires_immediately(loop):
    fired = []
    SessionTimers("s1", loop).arm("step", -50, lambda: fired.append(True))
    loop.advance(0)
    assert fired == [True]


def test_cancel_all(loop):
    fired = []
    timers = SessionTimers("s1", loop)
    timers.arm("step", 100, lambda: fired.append("step"))
    timers.arm("purge", 200, lambda: fired.append("purge"))

    assert timers.cancel_all() == 2
    assert timers.cancel_all() == 0
    assert not timers.cancel("step")

    loop.advance(500)
    assert fired == []
    assert loop.pending == 0
