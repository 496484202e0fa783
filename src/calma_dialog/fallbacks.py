"""Locally generated replies used when model output is unusable or unavailable."""

from __future__ import annotations

import random
from typing import Dict, Optional, Sequence, Tuple

GENERAL = "general"
EMOTIONAL = "emotional"
ERROR = "error"
SAFETY = "safety"

FALLBACK_BANKS: Dict[str, Tuple[str, ...]] = {
    GENERAL: (
        "Entiendo lo que me dices. ¿Podrías darme más detalles para ayudarte mejor?",
        "Me gustaría entender mejor tu situación. ¿Podrías explicarme un poco más?",
        "Gracias por compartir eso conmigo. ¿Qué te gustaría explorar sobre este tema?",
    ),
    EMOTIONAL: (
        "Veo que esto es importante para ti. ¿Te gustaría contarme más sobre cómo te hace sentir?",
        "Entiendo que esta situación te afecta. ¿Qué necesitas en este momento?",
        "Estoy aquí para escucharte. ¿Cómo podría ayudarte mejor con esto?",
    ),
    ERROR: (
        "Disculpa, tuve un pequeño inconveniente. ¿Podrías reformular tu mensaje?",
        "Lo siento, necesito un momento para procesar mejor. ¿Podrías expresarlo de otra manera?",
        "Perdón por la confusión. ¿Podrías ayudarme a entender mejor compartiendo más detalles?",
    ),
    SAFETY: (
        "Lo que sientes es importante y no tienes que enfrentarlo en soledad. Si estás en peligro "
        "o piensas en hacerte daño, llama ahora a los servicios de emergencia de tu país o a una "
        "línea de ayuda en crisis. ¿Estás a salvo en este momento?",
        "Estoy aquí contigo. Si sientes que no puedes mantenerte a salvo, por favor comunícate "
        "de inmediato con los servicios de emergencia o con alguien de confianza que pueda "
        "acompañarte. ¿Hay alguien cerca de ti ahora?",
    ),
}

def pick(
    kind: str,
    *,
    avoid: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """Random entry of ``kind`` that differs from ``avoid`` when the bank allows it."""
    bank: Sequence[str] = FALLBACK_BANKS.get(kind) or FALLBACK_BANKS[GENERAL]
    candidates = [text for text in bank if text != avoid] or list(bank)
    chooser = rng or random
    return chooser.choice(candidates)


__all__ = [
    "EMOTIONAL",
    "ERROR",
    "FALLBACK_BANKS",
    "GENERAL",
    "SAFETY",
    "pick",
]
