from datetime import datetime, timedelta

import pytest

from calma_dialog.analysis.emotion import EmotionAnalysis
from calma_dialog.errors import PersonalizationError
from calma_dialog.memory_aggregator import EmotionalTrend, RelevantContext
from calma_dialog.models import CommunicationStyle, PersonalizationProfile, ResponseLength
from calma_dialog.personalization import (
    PersonalizationConfig,
    PersonalizationEngine,
    UserPatterns,
    blend_length,
    choose_style,
    period_for,
)
from calma_dialog.storage import InMemoryDocumentStore


class _FailingStore(InMemoryDocumentStore):
    async def get_or_create(self, collection, key, defaults):
        raise ConnectionError("store offline")


def _analysis(intensity: int = 5, emotion: str = "tristeza") -> EmotionAnalysis:
    return EmotionAnalysis(primary_emotion=emotion, intensity=intensity)


@pytest.mark.parametrize(
    "hour, name",
    [(3, "madrugada"), (7, "mañana"), (13, "mediodía"), (16, "tarde"), (20, "noche")],
)
def test_period_for_hour(hour, name):
    assert period_for(datetime(2024, 5, 6, hour)).name == name


def test_blend_length_rounds_down():
    assert blend_length(ResponseLength.LONG, ResponseLength.SHORT) is ResponseLength.MEDIUM
    assert blend_length(ResponseLength.MEDIUM, ResponseLength.SHORT) is ResponseLength.SHORT
    assert blend_length(ResponseLength.LONG, ResponseLength.MEDIUM) is ResponseLength.MEDIUM
    assert blend_length(ResponseLength.LONG, ResponseLength.LONG) is ResponseLength.LONG


@pytest.mark.parametrize(
    "patterns, style",
    [
        (UserPatterns(intensity="alta", stability="baja", frequency="alta"), CommunicationStyle.EMPATICO),
        (UserPatterns(stability="baja", frequency="alta"), CommunicationStyle.EXPLORATORIO),
        (UserPatterns(frequency="alta"), CommunicationStyle.ESTRUCTURADO),
        (UserPatterns(), CommunicationStyle.DIRECTO),
    ],
)
def test_choose_style_decision_order(patterns, style):
    assert choose_style(patterns) is style


@pytest.mark.asyncio
async def test_get_or_create_is_idempotent(store):
    engine = PersonalizationEngine(store)

    first = await engine.get_or_create("user-1")
    second = await engine.get_or_create("user-1")

    assert first.ok and second.ok
    assert first.value == second.value
    assert first.value.communication_style is CommunicationStyle.EMPATICO
    assert first.value.response_length is ResponseLength.MEDIUM


@pytest.mark.asyncio
async def test_get_or_create_failure_returns_defaults(caplog):
    caplog.set_level("WARNING")
    engine = PersonalizationEngine(_FailingStore())

    outcome = await engine.get_or_create("user-1")

    assert isinstance(outcome.error, PersonalizationError)
    assert outcome.value == PersonalizationProfile(user_id="user-1")
    assert any(record.msg == "personalization.profile.failed" for record in caplog.records)


def test_high_intensity_softens_tone(store):
    engine = PersonalizationEngine(store)
    profile = PersonalizationProfile(user_id="user-1")

    config = engine.personalize(profile, RelevantContext.default(), _analysis(9), datetime(2024, 5, 6, 7))

    assert config.period.name == "mañana"
    assert config.style is CommunicationStyle.EMPATICO
    assert config.tone == "suave"
    assert config.target_length is ResponseLength.MEDIUM
    assert config.greeting == "Buenos días"
    assert config.last_interaction is None


def test_recent_high_intensity_streak_counts_as_alta(store):
    engine = PersonalizationEngine(store)
    context = RelevantContext(emotional_trend=EmotionalTrend(history=["miedo"] * 3, high_intensity_count=3))

    patterns = engine.analyze_patterns(
        PersonalizationProfile(user_id="user-1"), context, _analysis(4), datetime(2024, 5, 6, 16)
    )

    assert patterns.intensity == "alta"


def test_unstable_history_prefers_exploration(store):
    engine = PersonalizationEngine(store)
    profile = PersonalizationProfile(
        user_id="user-1", emotional_history=["tristeza", "alegria", "enojo", "tristeza"]
    )

    config = engine.personalize(profile, RelevantContext.default(), _analysis(5), datetime(2024, 5, 6, 16))

    assert config.patterns.stability == "baja"
    assert config.patterns.trend == "tristeza"
    assert config.style is CommunicationStyle.EXPLORATORIO
    assert config.tone == "reflexivo"


def test_frequent_visits_prefer_structure(store):
    engine = PersonalizationEngine(store)
    now = datetime(2024, 5, 6, 16)
    profile = PersonalizationProfile(
        user_id="user-1",
        temporal_history=[now - timedelta(hours=hours) for hours in (20, 12, 6, 3, 1)],
    )

    config = engine.personalize(profile, RelevantContext.default(), _analysis(5), now)

    assert config.patterns.frequency == "alta"
    assert config.style is CommunicationStyle.ESTRUCTURADO


def test_returning_user_summary_and_greeting(store):
    engine = PersonalizationEngine(store)
    now = datetime(2024, 5, 6, 21)
    profile = PersonalizationProfile(
        user_id="user-1",
        response_length=ResponseLength.LONG,
        emotional_history=["miedo"],
        last_interaction_at=now - timedelta(hours=2),
    )

    config = engine.personalize(profile, RelevantContext.default(), _analysis(5), now)

    assert config.style is CommunicationStyle.DIRECTO
    assert config.greeting == "Buenas noches, qué bueno volver a leerte"
    assert config.last_interaction == "última conversación hace 2 horas, emoción predominante entonces: miedo"
    assert config.target_length is ResponseLength.MEDIUM


def test_resolution_failure_returns_default_config(store, caplog):
    caplog.set_level("WARNING")
    engine = PersonalizationEngine(store)

    profile = PersonalizationProfile(user_id="user-1")

    config = engine.personalize(profile, None, _analysis(5), datetime(2024, 5, 6, 9))

    assert config == PersonalizationConfig.default()
    assert any(record.msg == "personalization.resolve.failed" for record in caplog.records)


@pytest.mark.asyncio
async def test_update_interaction_pattern_bounds_histories(store):
    engine = PersonalizationEngine(store)
    start = datetime(2024, 5, 6, 9, 0)

    for index in range(12):
        emotion = "tristeza" if index % 2 == 0 else "ansiedad"
        outcome = await engine.update_interaction_pattern(
            "user-1",
            emotion,
            "WORK_STUDY",
            "EMOTIONAL_SUPPORT",
            4,
            now=start + timedelta(minutes=index),
        )
        assert outcome.ok and outcome.value is True

    profile = (await engine.get_or_create("user-1")).value

    assert len(profile.emotional_history) == 10
    assert len(profile.topical_history) == 10
    assert len(profile.temporal_history) == 10
    assert profile.temporal_history[0] == start + timedelta(minutes=2)
    assert profile.period_counters == {"mañana": 12}
    assert profile.topic_counters == {"WORK_STUDY": 12}
    assert profile.period_last_emotion == {"mañana": "ansiedad"}
    assert profile.last_interaction_type == "EMOTIONAL_SUPPORT"
    assert profile.last_interaction_quality == 4
    assert profile.last_interaction_at == start + timedelta(minutes=11)


@pytest.mark.asyncio
async def test_update_failure_is_absorbed(caplog):
    caplog.set_level("WARNING")
    engine = PersonalizationEngine(_FailingStore())

    outcome = await engine.update_interaction_pattern(
        "user-1", "miedo", "HEALTH", "CONVERSATION", 3, now=datetime(2024, 5, 6, 9)
    )

    assert outcome.value is False
    assert isinstance(outcome.error, PersonalizationError)
    assert any(record.msg == "personalization.update.failed" for record in caplog.records)
