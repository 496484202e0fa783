from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Pattern, Tuple

from ..errors import ClassificationError
from ..outcome import Outcome, absorb
from .text import compile_terms, find_all, fold

logger = logging.getLogger(__name__)

THOUGHTS = "thoughts"
BELIEFS = "beliefs"
BEHAVIORS = "behaviors"

COPING_CATEGORIES = ("coping", "support_seeking")

COGNITIVE_REGISTRY: Mapping[str, Tuple[Tuple[str, Pattern[str]], ...]] = {
    THOUGHTS: (
        (
            "catastrophizing",
            compile_terms(
                (
                    "terrible",
                    "horrible",
                    "desastre",
                    "lo peor",
                    r"catastrof\w*",
                    "todo va a salir mal",
                    "se va a arruinar",
                    "no voy a poder",
                )
            ),
        ),
        (
            "overgeneralization",
            compile_terms(("siempre", "nunca", "todos", "nadie", "jamas", "todo el mundo", "cada vez que")),
        ),
        (
            "personalization",
            compile_terms(
                (
                    "mi culpa",
                    "es culpa mia",
                    "yo tuve la culpa",
                    "todo es por mi",
                    "me lo merezco",
                )
            ),
        ),
        (
            "dichotomous",
            compile_terms(
                (
                    "todo o nada",
                    "perfect[oa]",
                    "un fracaso total",
                    "completamente inutil",
                    "blanco o negro",
                )
            ),
        ),
    ),
    BELIEFS: (
        (
            "self_esteem",
            compile_terms(
                (
                    "no sirvo",
                    "no valgo",
                    "soy un fracaso",
                    r"soy una? inutil",
                    "no soy suficiente",
                    "soy un desastre",
                    "me odio",
                )
            ),
        ),
        (
            "expectations",
            compile_terms(("deberia", "tengo que", "debo", "se supone que", "tendria que")),
        ),
        (
            "relational",
            compile_terms(
                (
                    "nadie me quiere",
                    "nadie me entiende",
                    "me van a abandonar",
                    "todos me odian",
                    r"estoy sol[oa] en esto",
                    "no le importo a nadie",
                )
            ),
        ),
    ),
    BEHAVIORS: (
        (
            "avoidance",
            compile_terms(
                (
                    "evite",
                    "evito",
                    "prefiero no",
                    "deje de",
                    "no quiero salir",
                    "me encierro",
                    "lo pospongo",
                    "postergo",
                )
            ),
        ),
        (
            "support_seeking",
            compile_terms(
                (
                    "pedi ayuda",
                    "hable con",
                    "busque apoyo",
                    "le conte",
                    "necesito hablar",
                )
            ),
        ),
        (
            "coping",
            compile_terms(
                (
                    "respire",
                    "medite",
                    "practique",
                    "sali a caminar",
                    "hice ejercicio",
                    "use la tecnica",
                    "escribi",
                )
            ),
        ),
    ),
}


@dataclass(slots=True)
class CognitiveAnalysis:
    patterns: Dict[str, Dict[str, List[str]]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not any(self.patterns.values())

    def flagged(self) -> List[str]:
        """``dimension.category`` for every category with at least one match."""
        return [
            f"{dimension}.{category}"
            for dimension, categories in self.patterns.items()
            for category in categories
        ]

    def categories(self, dimension: str) -> List[str]:
        return list(self.patterns.get(dimension, {}))

    def coping_strategies(self) -> List[str]:
        behaviors = self.patterns.get(BEHAVIORS, {})
        found: List[str] = []
        for category in COPING_CATEGORIES:
            for snippet in behaviors.get(category, []):
                if snippet not in found:
                    found.append(snippet)
        return found

    def triggers(self) -> List[str]:
        """Thought and belief categories, used as trigger labels in progress entries."""
        return self.categories(THOUGHTS) + self.categories(BELIEFS)


class CognitivePatternDetector:
    """Runs every registered pattern; an empty result is a valid answer."""

    def __init__(
        self,
        registry: Mapping[str, Tuple[Tuple[str, Pattern[str]], ...]] = COGNITIVE_REGISTRY,
    ) -> None:
        self._registry = registry

    def analyze(self, text: object) -> Outcome[CognitiveAnalysis]:
        return absorb(
            lambda: self._analyze(text),
            default=CognitiveAnalysis,
            error_cls=ClassificationError,
            event="analysis.cognitive.error",
            logger=logger,
        )

    def _analyze(self, text: object) -> CognitiveAnalysis:
        if not isinstance(text, str):
            raise ClassificationError(f"expected text, got {type(text).__name__}")
        original = text.strip()
        folded = fold(original)
        result: Dict[str, Dict[str, List[str]]] = {}
        for dimension, rules in self._registry.items():
            for category, pattern in rules:
                matches = find_all(pattern, original, folded)
                if matches:
                    result.setdefault(dimension, {})[category] = matches
        return CognitiveAnalysis(patterns=result)


__all__ = [
    "CognitiveAnalysis",
    "CognitivePatternDetector",
    "COGNITIVE_REGISTRY",
    "THOUGHTS",
    "BELIEFS",
    "BEHAVIORS",
]
