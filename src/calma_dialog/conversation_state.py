from __future__ import annotations

"""Dialogue phase and support needs derived from the recent message window."""

import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Union

from .analysis.text import compile_terms, fold
from .errors import ClassificationError
from .models import ConversationPhase, StoredMessage
from .outcome import Outcome, absorb

logger = logging.getLogger(__name__)

MIN_HISTORY = 3
WINDOW = 5

THEME_PATTERNS = {
    "emotional": compile_terms(
        (
            r"triste\w*",
            r"ansi(?:edad|os[oa]s?)",
            "miedo",
            r"enoj\w*",
            r"sient[oe]\w*",
            r"emocion\w*",
            "animo",
            r"deprimid[oa]",
            r"angusti\w*",
        )
    ),
    "relational": compile_terms(
        (
            "familia",
            "pareja",
            r"amig[oa]s?",
            r"relacion(?:es)?",
            "padre",
            "madre",
            r"novi[oa]",
            r"herman[oa]s?",
            r"espos[oa]",
        )
    ),
    "occupational": compile_terms(
        (
            "trabajo",
            "jefe",
            "estudio",
            "universidad",
            r"examen(?:es)?",
            "clase",
            "oficina",
            "empleo",
            "tarea",
            "proyecto",
        )
    ),
}

INSTABILITY_PATTERN = compile_terms(
    (
        "no puedo",
        r"desesper\w*",
        r"colaps\w*",
        "me derrumbo",
        "descontrol",
        r"inestable",
        "cambios de humor",
        r"llor\w*",
        "panico",
        "crisis",
        "no aguanto",
    )
)

RESOURCE_PATTERN = compile_terms(
    (
        r"tecnicas?",
        r"ejercicios?",
        "respiracion",
        r"herramientas?",
        r"estrategias?",
        "meditacion",
        r"meditar|medite",
        r"practic\w*",
        "mindfulness",
        "diario",
        "relajacion",
    )
)


@dataclass(slots=True)
class ConversationState:
    phase: ConversationPhase = ConversationPhase.INITIAL
    recurring_themes: List[str] = field(default_factory=list)
    needs_reframing: bool = False
    needs_stabilization: bool = False
    needs_resource_building: bool = True
    progress_label: str = "exploring"

    @classmethod
    def initial(cls) -> "ConversationState":
        return cls()


HistoryItem = Union[StoredMessage, str]


def _content(item: HistoryItem) -> str:
    if isinstance(item, str):
        return item
    return item.content


class ConversationStateTracker:
    """Stateless; ``history`` must already include the current message."""

    def evaluate(self, history: Sequence[HistoryItem]) -> Outcome[ConversationState]:
        return absorb(
            lambda: self._evaluate(history),
            default=ConversationState.initial,
            error_cls=ClassificationError,
            event="conversation_state.evaluate.failed",
            logger=logger,
        )

    def _evaluate(self, history: Sequence[HistoryItem]) -> ConversationState:
        if len(history) < MIN_HISTORY:
            return ConversationState.initial()

        texts = [fold(_content(item)) for item in history[-WINDOW:]]
        themes = [
            name
            for name, pattern in THEME_PATTERNS.items()
            if any(pattern.search(text) for text in texts)
        ]
        instability = sum(len(INSTABILITY_PATTERN.findall(text)) for text in texts)
        resources = sum(len(RESOURCE_PATTERN.findall(text)) for text in texts)

        if len(history) <= MIN_HISTORY:
            phase = ConversationPhase.INITIAL
        elif len(themes) >= 2:
            phase = ConversationPhase.EXPLORATION
        elif resources > 0:
            phase = ConversationPhase.TOOL_LEARNING
        else:
            phase = ConversationPhase.FOLLOW_UP

        if resources > 2:
            label = "applying tools"
        elif themes:
            label = "identifying patterns"
        else:
            label = "exploring"

        return ConversationState(
            phase=phase,
            recurring_themes=themes,
            needs_reframing=instability > 2,
            needs_stabilization=instability > 3,
            needs_resource_building=resources < 2,
            progress_label=label,
        )


__all__ = ["ConversationState", "ConversationStateTracker"]
