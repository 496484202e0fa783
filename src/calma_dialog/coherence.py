from __future__ import annotations

"""Post-generation checks that keep replies specific and emotionally congruent."""

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from . import fallbacks
from .analysis.emotion import EmotionAnalysis
from .analysis.text import compile_terms, fold, word_count
from .settings import CoherenceSettings, settings

logger = logging.getLogger(__name__)

ACCEPTED = "accepted"
CORRECTED = "corrected"
REPLACED = "replaced"

CONTAINMENT_THRESHOLD = 7
EXPLORATION_THRESHOLD = 3

GENERIC_PATTERNS = compile_terms(
    (
        r"como (?:un|una) (?:modelo de lenguaje|inteligencia artificial|ia)",
        r"soy (?:un|una) (?:modelo de lenguaje|inteligencia artificial|ia)",
        "no puedo ayudarte con eso",
        "lo siento, no entiendo",
        "no tengo emociones",
        "espero que esto te ayude",
        "si tienes alguna otra pregunta",
        "no dudes en preguntar",
        r"en que (?:mas )?puedo ayudarte hoy",
    )
)

# emotion -> (markers looked for in the folded reply, phrase prepended when none is present)
EMOTION_LEXICON: Dict[str, Tuple[Tuple[str, ...], str]] = {
    "tristeza": (
        ("triste", "duele", "dolor", "dificil", "pesar"),
        "Siento que estés pasando por un momento tan difícil.",
    ),
    "ansiedad": (
        ("ansiedad", "ansios", "preocupa", "inquiet", "abruma", "calma"),
        "Entiendo que la ansiedad puede sentirse abrumadora.",
    ),
    "enojo": (
        ("enojo", "enoja", "molest", "frustra", "rabia", "injust"),
        "Es comprensible sentir enojo en una situación así.",
    ),
    "miedo": (
        ("miedo", "temor", "asust", "a salvo", "segur"),
        "Es natural sentir miedo ante algo así.",
    ),
    "agotamiento": (
        ("cansa", "agota", "descans", "energia"),
        "Se nota que has estado cargando con mucho cansancio.",
    ),
    "alegria": (
        ("alegr", "feliz", "celebr", "logr", "que bueno"),
        "¡Qué alegría leer esto!",
    ),
}

CONTAINMENT_MARKERS = ("estoy aqui", "aqui estoy", "contigo", "a tu lado", "paso a paso", "respira")
CONTAINMENT_PHRASE = "Estoy aquí contigo; vamos paso a paso."

INVITATION_MARKERS = ("?", "cuentame", "te gustaria", "me gustaria saber")
INVITATION_PHRASE = "Cuéntame un poco más sobre lo que estás viviendo."


@dataclass(slots=True)
class CoherenceResult:
    text: str
    action: str = ACCEPTED
    reasons: List[str] = field(default_factory=list)

    @property
    def replaced(self) -> bool:
        return self.action == REPLACED


def _contains_any(folded: str, markers: Tuple[str, ...]) -> bool:
    return any(marker in folded for marker in markers)


def _same(left: Optional[str], right: Optional[str]) -> bool:
    return left is not None and right is not None and left.strip() == right.strip()


class CoherenceValidator:
    """Pure text transform; never touches persisted state."""

    def __init__(
        self,
        cfg: Optional[CoherenceSettings] = None,
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._cfg = cfg or settings.coherence
        self._rng = rng

    def replacement_reasons(self, text: str, previous_response: Optional[str]) -> List[str]:
        reasons: List[str] = []
        if word_count(text) < self._cfg.min_words:
            reasons.append("too_short")
        if _same(text, previous_response):
            reasons.append("repeated")
        if GENERIC_PATTERNS.search(fold(text)):
            reasons.append("generic")
        return reasons

    def fallback_for(
        self,
        analysis: EmotionAnalysis,
        previous_response: Optional[str],
        *,
        crisis: bool = False,
    ) -> str:
        if crisis or analysis.urgent:
            kind = fallbacks.SAFETY
        elif analysis.label != "neutral":
            kind = fallbacks.EMOTIONAL
        else:
            kind = fallbacks.GENERAL
        return fallbacks.pick(kind, avoid=previous_response, rng=self._rng)

    def validate(
        self,
        text: str,
        analysis: EmotionAnalysis,
        previous_response: Optional[str] = None,
        *,
        crisis: bool = False,
    ) -> CoherenceResult:
        """``crisis`` forces the safety bank for replacements even without urgency words."""
        candidate = (text or "").strip()
        reasons = self.replacement_reasons(candidate, previous_response)
        if reasons:
            logger.info("coherence.replaced", extra={"reasons": reasons})
            return CoherenceResult(
                text=self.fallback_for(analysis, previous_response, crisis=crisis),
                action=REPLACED,
                reasons=reasons,
            )

        folded = fold(candidate)
        prefixes: List[str] = []
        lexicon = EMOTION_LEXICON.get(analysis.label)
        if lexicon is not None:
            markers, phrase = lexicon
            if not _contains_any(folded, markers):
                prefixes.insert(0, phrase)
                reasons.append("emotion_lexicon")
        if analysis.intensity >= CONTAINMENT_THRESHOLD:
            if not _contains_any(folded, CONTAINMENT_MARKERS):
                prefixes.insert(0, CONTAINMENT_PHRASE)
                reasons.append("containment")
        elif analysis.intensity <= EXPLORATION_THRESHOLD:
            if not _contains_any(folded, INVITATION_MARKERS):
                prefixes.insert(0, INVITATION_PHRASE)
                reasons.append("invitation")

        result = " ".join(prefixes + [candidate])
        if _same(result, previous_response):
            return CoherenceResult(
                text=self.fallback_for(analysis, previous_response, crisis=crisis),
                action=REPLACED,
                reasons=reasons + ["repeated"],
            )
        if prefixes:
            logger.info("coherence.corrected", extra={"reasons": reasons})
            return CoherenceResult(text=result, action=CORRECTED, reasons=reasons)
        return CoherenceResult(text=result)


__all__ = [
    "ACCEPTED",
    "CORRECTED",
    "REPLACED",
    "CoherenceResult",
    "CoherenceValidator",
    "EMOTION_LEXICON",
    "GENERIC_PATTERNS",
]
