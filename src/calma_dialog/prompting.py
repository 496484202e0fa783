from __future__ import annotations

"""Generation policy and the structured request handed to the language model."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .analysis.emotion import EmotionAnalysis
from .analysis.intent import Intent, IntentAnalysis
from .conversation_state import ConversationState
from .memory_aggregator import RelevantContext
from .models import ResponseLength
from .personalization import PersonalizationConfig
from .settings import LLMSettings, settings

URGENT_TEMPERATURE = 0.3
SUPPORT_TEMPERATURE = 0.7
HELP_TEMPERATURE = 0.5
GREETING_TEMPERATURE = 0.7
DEFAULT_TEMPERATURE = 0.5

SAFETY_DIRECTIVE = (
    "El usuario podría estar atravesando una crisis. Prioriza su seguridad: responde con calma, "
    "valida lo que siente, pregúntale si está a salvo y recomiéndale contactar de inmediato a "
    "los servicios de emergencia o a una línea de ayuda en crisis de su país."
)


class PolicyIntent(str, Enum):
    EMOTIONAL_SUPPORT = "EMOTIONAL_SUPPORT"
    SEEKING_HELP = "SEEKING_HELP"
    GREETING = "GREETING"
    CONVERSATION = "CONVERSATION"


def policy_intent_for(intent: IntentAnalysis) -> PolicyIntent:
    if intent.intent is Intent.EMOTIONAL_HELP:
        return PolicyIntent.EMOTIONAL_SUPPORT
    if intent.intent is Intent.IMPORTANT_CONSULT:
        return PolicyIntent.SEEKING_HELP
    if intent.is_greeting:
        return PolicyIntent.GREETING
    return PolicyIntent.CONVERSATION


@dataclass(frozen=True)
class LengthBudget:
    words: int
    max_tokens: int


LENGTH_BUDGETS: Dict[ResponseLength, LengthBudget] = {
    ResponseLength.SHORT: LengthBudget(words=60, max_tokens=200),
    ResponseLength.MEDIUM: LengthBudget(words=120, max_tokens=300),
    ResponseLength.LONG: LengthBudget(words=200, max_tokens=400),
}


@dataclass(frozen=True)
class PolicyDecision:
    temperature: float
    length: ResponseLength

    @property
    def budget(self) -> LengthBudget:
        return LENGTH_BUDGETS[self.length]


class GenerationPolicy:
    """Maps ``(urgent, intent)`` to sampling temperature and a length tier."""

    def resolve(self, urgent: bool, intent: PolicyIntent) -> PolicyDecision:
        if urgent:
            return PolicyDecision(URGENT_TEMPERATURE, ResponseLength.LONG)
        if intent is PolicyIntent.EMOTIONAL_SUPPORT:
            return PolicyDecision(SUPPORT_TEMPERATURE, ResponseLength.MEDIUM)
        if intent is PolicyIntent.SEEKING_HELP:
            return PolicyDecision(HELP_TEMPERATURE, ResponseLength.MEDIUM)
        if intent is PolicyIntent.GREETING:
            return PolicyDecision(GREETING_TEMPERATURE, ResponseLength.SHORT)
        return PolicyDecision(DEFAULT_TEMPERATURE, ResponseLength.SHORT)


@dataclass(slots=True)
class GenerationRequest:
    system_directive: str
    user_content: str
    prior_turns: List[Dict[str, str]] = field(default_factory=list)
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = LENGTH_BUDGETS[ResponseLength.SHORT].max_tokens
    presence_penalty: float = 0.6
    frequency_penalty: float = 0.3
    urgent: bool = False

    def to_messages(self) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": self.system_directive}]
        messages.extend(self.prior_turns)
        messages.append({"role": "user", "content": self.user_content})
        return messages


class PromptComposer:
    def __init__(
        self,
        policy: Optional[GenerationPolicy] = None,
        *,
        llm_cfg: Optional[LLMSettings] = None,
    ) -> None:
        self._policy = policy or GenerationPolicy()
        self._llm_cfg = llm_cfg or settings.llm

    @property
    def policy(self) -> GenerationPolicy:
        return self._policy

    def build_directive(
        self,
        analysis: EmotionAnalysis,
        context: RelevantContext,
        state: ConversationState,
        personalization: PersonalizationConfig,
    ) -> str:
        budget = LENGTH_BUDGETS[personalization.target_length]
        themes = ", ".join(state.recurring_themes) or "ninguno identificado"
        lines = [
            "Eres Calma, un acompañante de bienestar emocional que conversa en español.",
            f"Momento del día: {personalization.period.name} "
            f"(energía {personalization.period.energy}, profundidad {personalization.period.depth}).",
            f"Emoción detectada: {analysis.label} con intensidad {analysis.intensity}/10.",
            f"Temas recurrentes: {themes}.",
            f"Estilo de comunicación: {personalization.style.value}, tono {personalization.tone}.",
            f"Extensión objetivo: alrededor de {budget.words} palabras.",
            f"Fase de la conversación: {state.phase.value} ({state.progress_label}).",
        ]
        trend = context.emotional_trend
        if trend.history:
            lines.append(
                f"Tendencia emocional reciente: {trend.latest}, "
                f"{trend.high_intensity_count} momentos de alta intensidad."
            )
        if personalization.last_interaction:
            lines.append(f"Contexto previo: {personalization.last_interaction}.")
        if state.needs_stabilization:
            lines.append("Prioriza la contención y la regulación antes de explorar.")
        elif state.needs_reframing:
            lines.append("Ayuda a mirar la situación desde otra perspectiva, sin invalidar.")
        if state.needs_resource_building and analysis.suggested_tools:
            lines.append(f"Herramientas sugeridas: {', '.join(analysis.suggested_tools)}.")
        lines.append("No des diagnósticos y evita frases genéricas o repetidas.")
        return "\n".join(lines)

    def compose(
        self,
        *,
        content: str,
        analysis: EmotionAnalysis,
        intent: IntentAnalysis,
        context: RelevantContext,
        state: ConversationState,
        personalization: PersonalizationConfig,
        previous_response: Optional[str] = None,
    ) -> GenerationRequest:
        urgent = analysis.urgent or intent.is_crisis
        decision = self._policy.resolve(urgent, policy_intent_for(intent))

        prior_turns: List[Dict[str, str]] = []
        if previous_response:
            prior_turns.append({"role": "assistant", "content": previous_response})
        if urgent:
            prior_turns.append({"role": "system", "content": SAFETY_DIRECTIVE})

        return GenerationRequest(
            system_directive=self.build_directive(analysis, context, state, personalization),
            user_content=content,
            prior_turns=prior_turns,
            temperature=decision.temperature,
            max_tokens=decision.budget.max_tokens,
            presence_penalty=self._llm_cfg.presence_penalty,
            frequency_penalty=self._llm_cfg.frequency_penalty,
            urgent=urgent,
        )


__all__ = [
    "GenerationPolicy",
    "GenerationRequest",
    "LENGTH_BUDGETS",
    "LengthBudget",
    "PolicyDecision",
    "PolicyIntent",
    "PromptComposer",
    "SAFETY_DIRECTIVE",
    "policy_intent_for",
]
