from datetime import datetime

import pytest

from calma_dialog.analysis.emotion import EmotionAnalysis
from calma_dialog.analysis.intent import Intent, IntentAnalysis
from calma_dialog.conversation_state import ConversationState
from calma_dialog.memory_aggregator import RelevantContext
from calma_dialog.models import ResponseLength
from calma_dialog.personalization import PersonalizationConfig, period_for
from calma_dialog.prompting import (
    SAFETY_DIRECTIVE,
    GenerationPolicy,
    PolicyIntent,
    PromptComposer,
    policy_intent_for,
)


@pytest.mark.parametrize(
    "urgent, intent, temperature, length, max_tokens",
    [
        (True, PolicyIntent.GREETING, 0.3, ResponseLength.LONG, 400),
        (False, PolicyIntent.EMOTIONAL_SUPPORT, 0.7, ResponseLength.MEDIUM, 300),
        (False, PolicyIntent.SEEKING_HELP, 0.5, ResponseLength.MEDIUM, 300),
        (False, PolicyIntent.GREETING, 0.7, ResponseLength.SHORT, 200),
        (False, PolicyIntent.CONVERSATION, 0.5, ResponseLength.SHORT, 200),
    ],
)
def test_policy_table(urgent, intent, temperature, length, max_tokens):
    decision = GenerationPolicy().resolve(urgent, intent)

    assert decision.temperature == pytest.approx(temperature)
    assert decision.length is length
    assert decision.budget.max_tokens == max_tokens


@pytest.mark.parametrize(
    "analysis, expected",
    [
        (IntentAnalysis(intent=Intent.EMOTIONAL_HELP, matched=True), PolicyIntent.EMOTIONAL_SUPPORT),
        (IntentAnalysis(intent=Intent.IMPORTANT_CONSULT, matched=True), PolicyIntent.SEEKING_HELP),
        (IntentAnalysis(intent=Intent.GENERAL, matched=True), PolicyIntent.GREETING),
        (IntentAnalysis(), PolicyIntent.CONVERSATION),
    ],
)
def test_policy_intent_mapping(analysis, expected):
    assert policy_intent_for(analysis) is expected


def _compose(composer, *, analysis, intent, previous=None, state=None):
    return composer.compose(
        content="No puedo más con todo esto",
        analysis=analysis,
        intent=intent,
        context=RelevantContext.default(),
        state=state or ConversationState.initial(),
        personalization=PersonalizationConfig(period=period_for(datetime(2024, 5, 6, 22))),
        previous_response=previous,
    )


def test_crisis_request_carries_safety_turn(settings_factory):
    composer = PromptComposer(llm_cfg=settings_factory().llm)

    request = _compose(
        composer,
        analysis=EmotionAnalysis(primary_emotion="tristeza", intensity=9, urgent=True),
        intent=IntentAnalysis(intent=Intent.CRISIS, matched=True),
        previous="Te escucho, cuéntame más.",
    )

    assert request.urgent is True
    assert request.temperature == pytest.approx(0.3)
    assert request.max_tokens == 400
    assert request.presence_penalty == pytest.approx(0.6)
    assert request.frequency_penalty == pytest.approx(0.3)
    messages = request.to_messages()
    assert [m["role"] for m in messages] == ["system", "assistant", "system", "user"]
    assert messages[1]["content"] == "Te escucho, cuéntame más."
    assert messages[2]["content"] == SAFETY_DIRECTIVE
    assert messages[-1]["content"] == "No puedo más con todo esto"


def test_crisis_intent_alone_marks_request_urgent(settings_factory):
    composer = PromptComposer(llm_cfg=settings_factory().llm)

    request = _compose(
        composer,
        analysis=EmotionAnalysis(primary_emotion=None, intensity=6),
        intent=IntentAnalysis(intent=Intent.CRISIS, matched=True),
    )

    assert request.urgent is True
    assert request.prior_turns == [{"role": "system", "content": SAFETY_DIRECTIVE}]


def test_plain_conversation_has_no_prior_turns(settings_factory):
    composer = PromptComposer(llm_cfg=settings_factory().llm)

    request = _compose(
        composer,
        analysis=EmotionAnalysis(primary_emotion=None, intensity=6),
        intent=IntentAnalysis(),
    )

    assert request.urgent is False
    assert request.prior_turns == []
    assert request.temperature == pytest.approx(0.5)
    assert request.max_tokens == 200


def test_directive_reflects_analysis_and_state(settings_factory):
    composer = PromptComposer(llm_cfg=settings_factory().llm)
    state = ConversationState(recurring_themes=["emotional", "occupational"], needs_stabilization=True)
    analysis = EmotionAnalysis(
        primary_emotion="ansiedad",
        intensity=8,
        suggested_tools=["respiración 4-7-8"],
    )

    directive = composer.build_directive(
        analysis,
        RelevantContext.default(),
        state,
        PersonalizationConfig(period=period_for(datetime(2024, 5, 6, 22)), target_length=ResponseLength.LONG),
    )

    assert "ansiedad con intensidad 8/10" in directive
    assert "noche" in directive
    assert "emotional, occupational" in directive
    assert "alrededor de 200 palabras" in directive
    assert "contención" in directive
    assert "respiración 4-7-8" in directive
