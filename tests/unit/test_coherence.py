import random

import pytest

from calma_dialog import fallbacks
from calma_dialog.analysis.emotion import EmotionAnalysis
from calma_dialog.coherence import (
    ACCEPTED,
    CONTAINMENT_PHRASE,
    CORRECTED,
    INVITATION_PHRASE,
    REPLACED,
    CoherenceValidator,
)
from calma_dialog.settings import CoherenceSettings


@pytest.fixture
def validator():
    return CoherenceValidator(CoherenceSettings(min_words=5), rng=random.Random(7))


def _analysis(emotion=None, intensity=5, urgent=False):
    return EmotionAnalysis(primary_emotion=emotion, intensity=intensity, urgent=urgent)


def test_short_reply_is_replaced(validator):
    result = validator.validate("Ok, entiendo.", _analysis())

    assert result.action == REPLACED
    assert result.replaced
    assert "too_short" in result.reasons
    assert result.text in fallbacks.FALLBACK_BANKS[fallbacks.GENERAL]


def test_repeated_reply_is_replaced_with_something_else(validator):
    previous = "Gracias por compartir cómo fue tu semana conmigo."

    result = validator.validate(previous, _analysis(), previous)

    assert result.action == REPLACED
    assert "repeated" in result.reasons
    assert result.text != previous


def test_generic_reply_is_replaced(validator):
    result = validator.validate(
        "Como una inteligencia artificial, no tengo emociones pero puedo ayudarte.",
        _analysis("tristeza", 6),
    )

    assert result.action == REPLACED
    assert "generic" in result.reasons
    assert result.text in fallbacks.FALLBACK_BANKS[fallbacks.EMOTIONAL]


def test_urgent_replacement_uses_safety_bank(validator):
    result = validator.validate("No sé.", _analysis(intensity=9, urgent=True))

    assert result.text in fallbacks.FALLBACK_BANKS[fallbacks.SAFETY]


def test_missing_emotion_words_get_a_prefix(validator):
    text = "Gracias por contarme lo que pasó hoy en tu casa."

    result = validator.validate(text, _analysis("tristeza", 5))

    assert result.action == CORRECTED
    assert result.reasons == ["emotion_lexicon"]
    assert result.text.startswith("Siento que estés pasando")
    assert result.text.endswith(text)


def test_high_intensity_gets_containment_first(validator):
    text = "La ansiedad puede bajar si nos enfocamos en lo que sí controlas."

    result = validator.validate(text, _analysis("ansiedad", 8))

    assert result.action == CORRECTED
    assert result.reasons == ["containment"]
    assert result.text == f"{CONTAINMENT_PHRASE} {text}"


def test_low_intensity_gets_an_invitation(validator):
    text = "Eso suena como un día bastante tranquilo para ti."

    result = validator.validate(text, _analysis(intensity=2))

    assert result.action == CORRECTED
    assert result.text == f"{INVITATION_PHRASE} {text}"


def test_congruent_reply_is_accepted_unchanged(validator):
    text = "Gracias por compartir cómo fue tu semana conmigo."

    result = validator.validate(text, _analysis())

    assert result.action == ACCEPTED
    assert result.text == text
    assert result.reasons == []


def test_corrected_text_equal_to_previous_is_replaced(validator):
    text = "Vamos a revisar juntos lo que ocurrió esta mañana."
    previous = f"{CONTAINMENT_PHRASE} {text}"

    result = validator.validate(text, _analysis(intensity=8), previous)

    assert result.action == REPLACED
    assert result.text != previous


def test_crisis_flag_uses_safety_bank_without_urgency_words(validator):
    result = validator.validate("Vale.", _analysis(), crisis=True)

    assert result.action == REPLACED
    assert result.text in fallbacks.FALLBACK_BANKS[fallbacks.SAFETY]
