from __future__ import annotations

"""Intention, topic and urgency classification from fixed keyword registries."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Pattern, Sequence, Tuple

from ..errors import ClassificationError
from ..outcome import Outcome, absorb
from .text import compile_terms, fold

logger = logging.getLogger(__name__)

MATCH_CONFIDENCE = 0.8
DEFAULT_CONFIDENCE = 0.5


class Intent(str, Enum):
    CRISIS = "CRISIS"
    EMOTIONAL_HELP = "EMOTIONAL_HELP"
    IMPORTANT_CONSULT = "IMPORTANT_CONSULT"
    GENERAL = "GENERAL"


class Topic(str, Enum):
    EMOTIONAL = "EMOTIONAL"
    RELATIONSHIPS = "RELATIONSHIPS"
    WORK_STUDY = "WORK_STUDY"
    HEALTH = "HEALTH"
    GENERAL = "GENERAL"


class Urgency(str, Enum):
    NORMAL = "NORMAL"
    HIGH = "HIGH"


@dataclass(frozen=True)
class PatternRule:
    category: Enum
    pattern: Pattern[str]


def _rule(category: Enum, terms: Sequence[str]) -> PatternRule:
    return PatternRule(category=category, pattern=compile_terms(terms))


INTENT_REGISTRY: Tuple[PatternRule, ...] = (
    _rule(
        Intent.CRISIS,
        (
            r"necesito.*ayuda.*urgente",
            r"no.*puedo.*mas",
            "no quiero seguir",
            r"quiero.*terminar.*todo",
            r"no.*quiero.*vivir",
            "emergencia",
            "ayuda urgente",
            "me rindo",
            "no encuentro salida",
            "no tiene sentido",
            "quiero rendirme",
            r"no.*vale.*la.*pena",
        ),
    ),
    _rule(
        Intent.EMOTIONAL_HELP,
        (
            r"me.*siento.*mal",
            r"estoy.*triste",
            "me siento triste",
            r"estoy deprimid[oa]",
            r"necesito.*hablar",
            r"ayuda.*emocional",
            r"me siento sol[oa]",
            r"(?:me siento|estoy) ansios[oa]",
            r"(?:me siento|estoy) estresad[oa]",
            r"(?:me siento|estoy) preocupad[oa]",
            r"(?:me siento|estoy) abrumad[oa]",
        ),
    ),
    _rule(
        Intent.IMPORTANT_CONSULT,
        (
            r"necesito.*consejo",
            r"que.*debo.*hacer",
            r"ayuda.*decision",
            "que hago",
            "que deberia hacer",
            "no se que hacer",
            "puedes aconsejarme",
            "me das un consejo",
            "me puedes ayudar con una decision",
            "tengo una duda importante",
            "necesito orientacion",
        ),
    ),
    _rule(
        Intent.GENERAL,
        (
            "hola",
            "buenos dias",
            "buenas tardes",
            "buenas noches",
            r"como.*estas",
            r"que.*tal",
            "como va",
            "como te va",
            "saludos",
            "hey",
            "buen dia",
            "que pasa",
            "que cuentas",
        ),
    ),
)

TOPIC_REGISTRY: Tuple[PatternRule, ...] = (
    _rule(
        Topic.EMOTIONAL,
        (
            r"triste(?:za)?",
            r"deprimid[oa]",
            "feliz",
            r"alegr(?:ia|e)",
            "ansiedad",
            r"ansios[oa]",
            "miedo",
            "temor",
            r"estres(?:ado|ada)?",
            r"preocupad[oa]",
            r"abrumad[oa]",
            "soledad",
            "culpa",
            "verguenza",
            "enojo",
            "ira",
            "rabia",
            "frustracion",
            "impotencia",
            "nostalgia",
            "apatia",
            "desanimo",
            r"desmotivad[oa]",
        ),
    ),
    _rule(
        Topic.RELATIONSHIPS,
        (
            "pareja",
            "relacion",
            "relaciones",
            "novio",
            "novia",
            r"espos[oa]",
            "familia",
            "madre",
            "padre",
            r"hij[oa]s?",
            r"herman[oa]s?",
            r"amig[oa]s?",
            "amistad",
            r"companer[oa]",
            "conflicto familiar",
            "conflicto de pareja",
            "divorcio",
            "separacion",
            "perdida",
            "duelo",
        ),
    ),
    _rule(
        Topic.WORK_STUDY,
        (
            "trabajo",
            "empleo",
            "oficina",
            "jefe",
            "colega",
            "proyecto",
            "tarea",
            "estudio",
            "universidad",
            "escuela",
            r"examen(?:es)?",
            "clase",
            "profesor",
            "maestro",
            "rendimiento",
            "estres laboral",
            "estres academico",
            "desempleo",
            "busqueda de trabajo",
        ),
    ),
    _rule(
        Topic.HEALTH,
        (
            "salud",
            "enfermedad",
            "dolor",
            "malestar",
            "sintoma",
            "cansancio",
            "insomnio",
            "fiebre",
            "gripe",
            "lesion",
            "hospital",
            "doctor",
            r"medic[oa]",
            "terapia",
            "tratamiento",
            "ansiedad fisica",
            "ataque de panico",
        ),
    ),
    _rule(
        Topic.GENERAL,
        (
            "vida",
            "futuro",
            "presente",
            "pasado",
            "situacion",
            "problema",
            "dificultad",
            "meta",
            "objetivo",
            "logro",
            "cambio",
            "rutina",
            "motivacion",
            "esperanza",
            "incertidumbre",
            "decision",
            "crecimiento",
            "desarrollo",
        ),
    ),
)

URGENCY_WORDS = compile_terms(
    (
        "urgente",
        "emergencia",
        "ahora mismo",
        "ya mismo",
        r"inmediat\w*",
        "cuanto antes",
        "no puedo esperar",
        "ayuda ya",
    )
)

FOLLOW_UP_INTENTS = frozenset({Intent.CRISIS, Intent.EMOTIONAL_HELP})


@dataclass(slots=True)
class IntentAnalysis:
    intent: Intent = Intent.GENERAL
    intent_confidence: float = DEFAULT_CONFIDENCE
    topic: Topic = Topic.GENERAL
    topic_confidence: float = DEFAULT_CONFIDENCE
    requires_follow_up: bool = False
    urgency: Urgency = Urgency.NORMAL
    # False when the intention is the fallback default rather than a registry hit.
    matched: bool = False

    @property
    def confidence(self) -> float:
        return self.intent_confidence

    @property
    def is_crisis(self) -> bool:
        return self.intent is Intent.CRISIS

    @property
    def is_greeting(self) -> bool:
        return self.intent is Intent.GENERAL and self.matched

    @classmethod
    def default(cls) -> "IntentAnalysis":
        return cls()


def _first_match(registry: Sequence[PatternRule], content: str) -> Optional[Enum]:
    for rule in registry:
        if rule.pattern.search(content):
            return rule.category
    return None


def _folded(text: object) -> str:
    if not isinstance(text, str):
        raise ClassificationError(f"expected text, got {type(text).__name__}")
    return fold(text.strip())


class IntentClassifier:
    def __init__(
        self,
        intents: Sequence[PatternRule] = INTENT_REGISTRY,
        topics: Sequence[PatternRule] = TOPIC_REGISTRY,
    ) -> None:
        self._intents = tuple(intents)
        self._topics = tuple(topics)

    def analyze(self, text: object) -> Outcome[IntentAnalysis]:
        intent = absorb(
            lambda: _first_match(self._intents, _folded(text)),
            default=lambda: None,
            error_cls=ClassificationError,
            event="analysis.intent.error",
            logger=logger,
        )
        topic = absorb(
            lambda: _first_match(self._topics, _folded(text)),
            default=lambda: None,
            error_cls=ClassificationError,
            event="analysis.topic.error",
            logger=logger,
        )
        urgency = absorb(
            lambda: Urgency.HIGH if URGENCY_WORDS.search(_folded(text)) else Urgency.NORMAL,
            default=lambda: Urgency.NORMAL,
            error_cls=ClassificationError,
            event="analysis.urgency.error",
            logger=logger,
        )

        result = IntentAnalysis(urgency=urgency.value)
        if intent.value is not None:
            result.intent = intent.value
            result.intent_confidence = MATCH_CONFIDENCE
            result.matched = True
            result.requires_follow_up = intent.value in FOLLOW_UP_INTENTS
        if topic.value is not None:
            result.topic = topic.value
            result.topic_confidence = MATCH_CONFIDENCE

        error = intent.error or topic.error or urgency.error
        if error is not None:
            return Outcome.absorbed(result, error)
        return Outcome.success(result)


__all__ = [
    "Intent",
    "Topic",
    "Urgency",
    "IntentAnalysis",
    "IntentClassifier",
    "PatternRule",
    "INTENT_REGISTRY",
    "TOPIC_REGISTRY",
    "URGENCY_WORDS",
]
