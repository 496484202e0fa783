from __future__ import annotations

"""Pattern-based emotion and intensity detection."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Pattern, Sequence, Tuple

from ..errors import ClassificationError
from ..outcome import Outcome, absorb
from .text import compile_terms, fold

logger = logging.getLogger(__name__)

BASE_INTENSITY = 6
HIGH_INTENSITY = 8
MEDIUM_INTENSITY = 5
URGENCY_BOOST = 3
MIN_INTENSITY = 1
MAX_INTENSITY = 10

_HIGH_COMMON = ("muy", "demasiado", "extremadamente", "muchisimo", "terriblemente", "insoportable")
_MEDIUM_COMMON = ("un poco", "algo", "ligeramente", "a veces", "un tanto", "medio")

URGENCY_PATTERN = compile_terms(
    (
        "urgente",
        "urgencia",
        "emergencia",
        "auxilio",
        "ya no puedo mas",
        "no puedo mas",
        "ayuda ya",
        "ahora mismo",
        r"inmediat\w*",
    )
)

AMPLIFIER_WORDS: Tuple[str, ...] = (
    "realmente",
    "totalmente",
    "completamente",
    "absolutamente",
    "profundamente",
    "constantemente",
)
_AMPLIFIER_PATTERNS = tuple(compile_terms((word,)) for word in AMPLIFIER_WORDS)


@dataclass(frozen=True)
class EmotionCategory:
    name: str
    pattern: Pattern[str]
    high: Pattern[str]
    medium: Pattern[str]
    responses: Mapping[str, Tuple[str, ...]]
    tools: Tuple[str, ...]


def _category(
    name: str,
    terms: Sequence[str],
    *,
    high: Sequence[str] = (),
    medium: Sequence[str] = (),
    responses: Mapping[str, Tuple[str, ...]],
    tools: Tuple[str, ...],
) -> EmotionCategory:
    return EmotionCategory(
        name=name,
        pattern=compile_terms(terms),
        high=compile_terms(tuple(high) + _HIGH_COMMON),
        medium=compile_terms(tuple(medium) + _MEDIUM_COMMON),
        responses=responses,
        tools=tools,
    )


# Evaluated top to bottom; the first match is the primary emotion. Distress
# categories come before alegria so mixed messages resolve to the need.
EMOTION_REGISTRY: Tuple[EmotionCategory, ...] = (
    _category(
        "tristeza",
        (
            r"triste(?:za)?",
            r"deprimid[oa]",
            "depresion",
            r"desanimad[oa]",
            "desanimo",
            "sin energia",
            r"me siento sol[oa]",
            "soledad",
            "vacio",
            r"llor(?:ar|o|ando|e)",
            "melancolia",
        ),
        high=(r"destrozad[oa]", r"devastad[oa]", "no paro de llorar"),
        medium=(r"baj[oa] de animo", "desanimadillo"),
        responses={
            "validation": (
                "Siento que estés pasando por este momento tan difícil.",
                "Es comprensible sentirse así cuando algo nos duele.",
            ),
            "exploration": (
                "¿Desde cuándo te sientes así?",
                "¿Hay algo en particular que haya despertado esta tristeza?",
            ),
            "support": (
                "No tienes que atravesar esto en soledad; aquí estoy para escucharte.",
            ),
            "technique": (
                "A veces ayuda elegir una actividad pequeña y agradable para hoy.",
            ),
        },
        tools=("activación conductual", "diario de gratitud", "autocompasión"),
    ),
    _category(
        "ansiedad",
        (
            r"ansi(?:edad|os[oa]s?)",
            "nervios",
            r"nervios[oa]",
            r"inquiet(?:o|a|ud)",
            r"preocupa(?:do|da|cion)",
            "angustia",
            r"angustiad[oa]",
            "panico",
            r"estres(?:ado|ada)?",
            r"abrumad[oa]",
        ),
        high=("ataque de panico", "no puedo respirar", "me ahogo"),
        medium=(r"algo nervios[oa]",),
        responses={
            "validation": (
                "Entiendo que la ansiedad puede sentirse abrumadora.",
                "Tiene sentido que te sientas inquieto con todo lo que está pasando.",
            ),
            "exploration": (
                "¿Qué pensamientos aparecen cuando sientes esa preocupación?",
            ),
            "support": (
                "Vamos paso a paso; no necesitas resolverlo todo ahora.",
            ),
            "technique": (
                "Probemos una respiración lenta: inhala en 4, sostén en 7 y exhala en 8.",
            ),
        },
        tools=("respiración 4-7-8", "grounding 5-4-3-2-1", "relajación muscular progresiva"),
    ),
    _category(
        "enojo",
        (
            r"enojad[oa]",
            "enojo",
            "ira",
            "rabia",
            r"furios[oa]",
            r"molest[oa]",
            r"frustrad[oa]",
            "frustracion",
            "impotencia",
        ),
        high=("furia", "exploto", "estallar"),
        medium=(r"algo molest[oa]", "fastidiad[oa]"),
        responses={
            "validation": (
                "Es válido sentir enojo cuando algo te parece injusto.",
            ),
            "exploration": (
                "¿Qué fue lo que más te molestó de esa situación?",
            ),
            "support": (
                "Tu enojo nos da información sobre lo que es importante para ti.",
            ),
            "technique": (
                "Antes de responder, puede ayudar tomar unos minutos de pausa consciente.",
            ),
        },
        tools=("tiempo fuera", "respiración diafragmática", "reestructuración cognitiva"),
    ),
    _category(
        "miedo",
        (
            "miedo",
            "temor",
            r"asustad[oa]",
            "me da miedo",
            "fobia",
            r"aterrad[oa]",
        ),
        high=("pavor", "terror"),
        medium=(r"algo asustad[oa]",),
        responses={
            "validation": (
                "El miedo es una señal de que algo te importa y te sientes vulnerable.",
            ),
            "exploration": (
                "¿Qué es lo peor que imaginas que podría pasar?",
            ),
            "support": (
                "Estás a salvo en este espacio; podemos mirarlo juntos con calma.",
            ),
            "technique": (
                "Nombrar cinco cosas que ves a tu alrededor puede ayudarte a volver al presente.",
            ),
        },
        tools=("exposición gradual", "anclaje al presente", "registro de pensamientos"),
    ),
    _category(
        "agotamiento",
        (
            r"cansad[oa]",
            r"agotad[oa]",
            "agotamiento",
            "sin fuerzas",
            r"exhaust[oa]",
            r"quemad[oa]",
            "no doy mas",
        ),
        high=("no puedo levantarme",),
        medium=(r"algo cansad[oa]",),
        responses={
            "validation": (
                "Se nota que has estado cargando mucho últimamente.",
            ),
            "exploration": (
                "¿Qué es lo que más energía te está quitando estos días?",
            ),
            "support": (
                "Descansar también es una forma de cuidarte.",
            ),
            "technique": (
                "Podrías reservar una pausa breve cada hora para estirarte y respirar.",
            ),
        },
        tools=("pausas activas", "higiene del sueño", "límites saludables"),
    ),
    _category(
        "alegria",
        (
            "feliz",
            r"content[oa]",
            r"alegr(?:e|ia)",
            r"satisfech[oa]",
            r"motivad[oa]",
            r"entusiasm(?:o|ad[oa])",
            r"orgullos[oa]",
        ),
        high=("felicisim[oa]", "euforic[oa]"),
        medium=("mas o menos bien",),
        responses={
            "validation": (
                "¡Qué bueno leer esto! Me alegra mucho por ti.",
            ),
            "exploration": (
                "¿Qué crees que contribuyó a que te sientas así?",
            ),
            "support": (
                "Vale la pena reconocer lo que hiciste para llegar aquí.",
            ),
            "technique": (
                "Anotar este momento en tu registro de logros puede ayudarte a recordarlo.",
            ),
        },
        tools=("registro de logros", "saboreo", "gratitud"),
    ),
)


@dataclass(slots=True)
class EmotionAnalysis:
    primary_emotion: Optional[str]
    intensity: int
    modifier: Optional[str] = None
    secondary_emotions: List[str] = field(default_factory=list)
    urgent: bool = False
    suggested_responses: Dict[str, List[str]] = field(default_factory=dict)
    suggested_tools: List[str] = field(default_factory=list)

    @property
    def label(self) -> str:
        return self.primary_emotion or "neutral"

    @classmethod
    def neutral(cls) -> "EmotionAnalysis":
        return cls(primary_emotion="neutral", intensity=5, urgent=False)


def _clamp(value: int) -> int:
    return max(MIN_INTENSITY, min(MAX_INTENSITY, value))


class EmotionClassifier:
    """Stateless classifier; one instance can serve concurrent requests."""

    def __init__(self, registry: Sequence[EmotionCategory] = EMOTION_REGISTRY) -> None:
        self._registry = tuple(registry)

    def analyze(self, text: object) -> Outcome[EmotionAnalysis]:
        return absorb(
            lambda: self._analyze(text),
            default=EmotionAnalysis.neutral,
            error_cls=ClassificationError,
            event="analysis.emotion.error",
            logger=logger,
        )

    def _analyze(self, text: object) -> EmotionAnalysis:
        if not isinstance(text, str):
            raise ClassificationError(f"expected text, got {type(text).__name__}")
        content = fold(text.strip())
        if not content:
            return EmotionAnalysis.neutral()

        primary: Optional[EmotionCategory] = None
        secondary: List[str] = []
        for category in self._registry:
            if category.pattern.search(content):
                if primary is None:
                    primary = category
                else:
                    secondary.append(category.name)

        intensity = BASE_INTENSITY
        modifier: Optional[str] = None
        if primary is not None:
            if primary.high.search(content):
                intensity, modifier = HIGH_INTENSITY, "high"
            elif primary.medium.search(content):
                intensity, modifier = MEDIUM_INTENSITY, "medium"

        urgent = bool(URGENCY_PATTERN.search(content))
        if urgent:
            intensity = _clamp(intensity + URGENCY_BOOST)

        for amplifier in _AMPLIFIER_PATTERNS:
            if amplifier.search(content):
                intensity = _clamp(intensity + 1)

        return EmotionAnalysis(
            primary_emotion=primary.name if primary else None,
            intensity=_clamp(intensity),
            modifier=modifier,
            secondary_emotions=secondary,
            urgent=urgent,
            suggested_responses={k: list(v) for k, v in primary.responses.items()} if primary else {},
            suggested_tools=list(primary.tools) if primary else [],
        )


__all__ = [
    "EmotionAnalysis",
    "EmotionCategory",
    "EmotionClassifier",
    "EMOTION_REGISTRY",
    "AMPLIFIER_WORDS",
    "URGENCY_PATTERN",
]
