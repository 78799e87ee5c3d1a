from dataclasses import replace

import pytest

from bot.plugins.persona_typing.profiles import (
    DEFAULT_TYPING_PROFILE,
    PERSONA_TYPING_PROFILES,
    TypingProfileResolver,
)


@pytest.mark.parametrize("persona_id", [*PERSONA_TYPING_PROFILES, "nobody", ""])
def test_speed_range_is_ordered(persona_id):
    speed = TypingProfileResolver().typing_speed(persona_id)
    assert speed.min <= speed.avg <= speed.max


def test_builtin_personas():
    resolver = TypingProfileResolver()
    assert resolver.known_personas() == sorted(
        ["office_worker", "frustrated_user", "patient_retiree", "new_employee", "executive"]
    )
    assert tuple(resolver.typing_speed("executive")) == (50, 65, 58)
    assert resolver.resolve("frustrated_user").anger_driven
    assert not resolver.resolve("office_worker").anger_driven


def test_unknown_persona_falls_back_to_default():
    resolver = TypingProfileResolver()
    assert resolver.resolve("nobody") is DEFAULT_TYPING_PROFILE
    assert resolver.resolve(None) is DEFAULT_TYPING_PROFILE
    assert tuple(resolver.typing_speed("nobody")) == (30, 50, 40)


def test_persona_ids_match_exactly():
    assert TypingProfileResolver().resolve("Executive") is DEFAULT_TYPING_PROFILE


def test_register_extra_persona():
    custom = replace(DEFAULT_TYPING_PROFILE, base_wpm=70, min_wpm=60, max_wpm=80)
    resolver = TypingProfileResolver({"speed_typist": custom})
    assert resolver.resolve("speed_typist") is custom
    # the built-in table is left alone
    assert "speed_typist" not in PERSONA_TYPING_PROFILES


def test_register_rejects_inverted_range():
    bad = replace(DEFAULT_TYPING_PROFILE, min_wpm=60, max_wpm=50)
    with pytest.raises(ValueError):
        TypingProfileResolver().register("bad", bad)


def test_register_rejects_bad_probability():
    bad = replace(DEFAULT_TYPING_PROFILE, pause_frequency=1.5)
    with pytest.raises(ValueError):
        TypingProfileResolver().register("bad", bad)
