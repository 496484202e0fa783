import pytest

from calma_dialog.analysis.intent import (
    Intent,
    IntentAnalysis,
    IntentClassifier,
    PatternRule,
    Topic,
    Urgency,
)
from calma_dialog.errors import ClassificationError


@pytest.fixture
def classifier():
    return IntentClassifier()


def test_crisis_requires_follow_up(classifier):
    outcome = classifier.analyze("necesito ayuda urgente")

    assert outcome.ok
    result = outcome.value
    assert result.intent is Intent.CRISIS
    assert result.is_crisis
    assert result.requires_follow_up is True
    assert result.confidence == pytest.approx(0.8)
    assert result.urgency is Urgency.HIGH


def test_greeting_is_a_matched_general_intent(classifier):
    result = classifier.analyze("Hola, ¿qué tal?").value

    assert result.intent is Intent.GENERAL
    assert result.matched is True
    assert result.is_greeting
    assert result.requires_follow_up is False
    assert result.topic is Topic.GENERAL
    assert result.topic_confidence == pytest.approx(0.5)


def test_consultation_with_work_topic(classifier):
    result = classifier.analyze("Tengo problemas con mi jefe en el trabajo, no sé qué hacer").value

    assert result.intent is Intent.IMPORTANT_CONSULT
    assert result.requires_follow_up is False
    assert result.topic is Topic.WORK_STUDY
    assert result.topic_confidence == pytest.approx(0.8)
    assert result.urgency is Urgency.NORMAL


def test_emotional_help_requires_follow_up(classifier):
    result = classifier.analyze("Me siento sola desde que me mudé").value

    assert result.intent is Intent.EMOTIONAL_HELP
    assert result.requires_follow_up is True


def test_unmatched_text_falls_back_to_defaults(classifier):
    result = classifier.analyze("El clima estuvo agradable").value

    assert result.intent is Intent.GENERAL
    assert result.matched is False
    assert not result.is_greeting
    assert result.confidence == pytest.approx(0.5)
    assert result.topic is Topic.GENERAL
    assert result.urgency is Urgency.NORMAL


def test_non_text_input_returns_default_with_error(classifier, caplog):
    caplog.set_level("WARNING")

    outcome = classifier.analyze(None)

    assert isinstance(outcome.error, ClassificationError)
    assert outcome.value == IntentAnalysis.default()
    events = {record.msg for record in caplog.records}
    assert {"analysis.intent.error", "analysis.topic.error", "analysis.urgency.error"} <= events


def test_topic_failure_keeps_intent(caplog):
    class _ExplodingPattern:
        def search(self, text):
            raise RuntimeError("boom")

    classifier = IntentClassifier(topics=[PatternRule(category=Topic.HEALTH, pattern=_ExplodingPattern())])

    outcome = classifier.analyze("necesito ayuda urgente")

    assert isinstance(outcome.error, ClassificationError)
    assert outcome.value.intent is Intent.CRISIS
    assert outcome.value.topic is Topic.GENERAL
    assert any(record.msg == "analysis.topic.error" for record in caplog.records)
