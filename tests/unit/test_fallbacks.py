import random

from calma_dialog import fallbacks


def test_pick_avoids_the_previous_text():
    rng = random.Random(3)
    for kind, bank in fallbacks.FALLBACK_BANKS.items():
        for previous in bank:
            assert fallbacks.pick(kind, avoid=previous, rng=rng) != previous


def test_pick_unknown_kind_uses_general_bank():
    assert fallbacks.pick("nope") in fallbacks.FALLBACK_BANKS[fallbacks.GENERAL]


def test_safety_texts_point_to_emergency_help():
    for text in fallbacks.FALLBACK_BANKS[fallbacks.SAFETY]:
        assert "emergencia" in text
