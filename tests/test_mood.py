import pytest

from bot.plugins.persona_typing.mood import PersonaSnapshot, mood_modifier


def test_neutral_mood_is_identity():
    assert mood_modifier("neutral") == pytest.approx(1.0)


def test_angry_and_confident_types_fastest():
    assert mood_modifier("angry", 10, 10) == pytest.approx(1.3 * 1.25 * 1.2)


def test_grateful_and_unsure_types_slower():
    assert mood_modifier("grateful", 0, 0) == pytest.approx(0.9 * 0.75 * 0.8)


def test_levels_are_clamped():
    assert mood_modifier("calm", 20, -3) == mood_modifier("calm", 10, 0)


def test_unknown_mood_has_no_effect():
    assert mood_modifier("meh") == pytest.approx(1.0)
    assert mood_modifier(None) == pytest.approx(1.0)


def test_snapshot_from_state():
    snap = PersonaSnapshot.from_state("executive", "Angry", 10, 10)
    assert snap.persona_id == "executive"
    assert snap.mood_modifier == pytest.approx(1.95)
    assert PersonaSnapshot("executive").mood_modifier == 1.0
