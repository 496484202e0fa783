from __future__ import annotations

"""Per-user communication preferences and time-of-day adaptation."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from .analysis.emotion import EmotionAnalysis
from .errors import PersonalizationError
from .memory_aggregator import RelevantContext
from .models import CommunicationStyle, PersonalizationProfile, ResponseLength, as_local_naive
from .outcome import Outcome, absorb, absorb_async
from .storage import DocumentStore, UserRepository

logger = logging.getLogger(__name__)

HISTORY_SIZE = 10
HIGH_INTENSITY = 8
HIGH_INTENSITY_STREAK = 3
UNSTABLE_TRANSITION_RATIO = 0.5
FREQUENT_WINDOW = timedelta(hours=24)
FREQUENT_MIN_VISITS = 5

_LENGTH_ORDER: Sequence[ResponseLength] = (
    ResponseLength.SHORT,
    ResponseLength.MEDIUM,
    ResponseLength.LONG,
)


@dataclass(frozen=True)
class DayPeriod:
    name: str
    start: int
    end: int
    energy: str
    depth: str
    ideal_length: ResponseLength
    tone: str
    greeting: str

    def contains(self, hour: int) -> bool:
        return self.start <= hour <= self.end


DAY_PERIODS: Sequence[DayPeriod] = (
    DayPeriod("madrugada", 0, 5, "baja", "alta", ResponseLength.SHORT, "suave", "Hola, aquí estoy contigo"),
    DayPeriod("mañana", 6, 11, "alta", "media", ResponseLength.MEDIUM, "energético", "Buenos días"),
    DayPeriod("mediodía", 12, 14, "media", "baja", ResponseLength.SHORT, "práctico", "Buenas tardes"),
    DayPeriod("tarde", 15, 18, "media", "alta", ResponseLength.MEDIUM, "reflexivo", "Buenas tardes"),
    DayPeriod("noche", 19, 23, "baja", "alta", ResponseLength.MEDIUM, "tranquilo", "Buenas noches"),
)
_DEFAULT_PERIOD = DAY_PERIODS[3]


def period_for(moment: datetime) -> DayPeriod:
    for period in DAY_PERIODS:
        if period.contains(moment.hour):
            return period
    return _DEFAULT_PERIOD


@dataclass(frozen=True)
class StyleTraits:
    tone: str
    validation: bool
    reflective: bool
    structured: bool


STYLE_TRAITS: Dict[CommunicationStyle, StyleTraits] = {
    CommunicationStyle.EMPATICO: StyleTraits("cálido", True, True, False),
    CommunicationStyle.DIRECTO: StyleTraits("claro", False, False, True),
    CommunicationStyle.EXPLORATORIO: StyleTraits("curioso", True, True, False),
    CommunicationStyle.ESTRUCTURADO: StyleTraits("organizado", False, True, True),
}


@dataclass(slots=True)
class UserPatterns:
    trend: str = "neutral"
    intensity: str = "normal"
    stability: str = "alta"
    frequency: str = "normal"


@dataclass(slots=True)
class PersonalizationConfig:
    period: DayPeriod = _DEFAULT_PERIOD
    style: CommunicationStyle = CommunicationStyle.EMPATICO
    traits: StyleTraits = STYLE_TRAITS[CommunicationStyle.EMPATICO]
    target_length: ResponseLength = ResponseLength.MEDIUM
    tone: str = "neutral"
    greeting: str = "Hola"
    last_interaction: Optional[str] = None
    patterns: UserPatterns = field(default_factory=UserPatterns)

    @classmethod
    def default(cls) -> "PersonalizationConfig":
        return cls()


def _dominant(items: Sequence[str]) -> str:
    if not items:
        return "neutral"
    counts: Dict[str, int] = {}
    for item in items:
        counts[item] = counts.get(item, 0) + 1
    return max(counts.items(), key=lambda kv: kv[1])[0]


def _elapsed(delta: timedelta) -> str:
    minutes = int(delta.total_seconds() // 60)
    if minutes < 1:
        return "hace un momento"
    if minutes < 60:
        return f"hace {minutes} minutos"
    hours = minutes // 60
    if hours < 24:
        return "hace 1 hora" if hours == 1 else f"hace {hours} horas"
    days = hours // 24
    return "hace 1 día" if days == 1 else f"hace {days} días"


def blend_length(preferred: ResponseLength, ideal: ResponseLength) -> ResponseLength:
    """Bias the stored preference toward the period's ideal, rounding down."""
    index = (_LENGTH_ORDER.index(preferred) + _LENGTH_ORDER.index(ideal)) // 2
    return _LENGTH_ORDER[index]


def choose_style(patterns: UserPatterns) -> CommunicationStyle:
    if patterns.intensity == "alta":
        return CommunicationStyle.EMPATICO
    if patterns.stability == "baja":
        return CommunicationStyle.EXPLORATORIO
    if patterns.frequency == "alta":
        return CommunicationStyle.ESTRUCTURADO
    return CommunicationStyle.DIRECTO


class PersonalizationEngine:
    def __init__(self, store: DocumentStore, *, history_size: int = HISTORY_SIZE) -> None:
        self._history_size = history_size
        self._repo: UserRepository[PersonalizationProfile] = UserRepository(
            store, collection="profiles", model=PersonalizationProfile
        )

    async def get_or_create(self, user_id: str) -> Outcome[PersonalizationProfile]:
        return await absorb_async(
            lambda: self._repo.get_or_create(user_id),
            default=lambda: PersonalizationProfile(user_id=user_id),
            error_cls=PersonalizationError,
            event="personalization.profile.failed",
            logger=logger,
        )

    def analyze_patterns(
        self,
        profile: PersonalizationProfile,
        context: RelevantContext,
        analysis: EmotionAnalysis,
        now: datetime,
    ) -> UserPatterns:
        emotions: List[str] = list(profile.emotional_history)
        patterns = UserPatterns(trend=_dominant(emotions))

        if analysis.intensity >= HIGH_INTENSITY or (
            context.emotional_trend.high_intensity_count >= HIGH_INTENSITY_STREAK
        ):
            patterns.intensity = "alta"

        if len(emotions) >= 3:
            transitions = sum(1 for prev, cur in zip(emotions, emotions[1:]) if prev != cur)
            if transitions / (len(emotions) - 1) > UNSTABLE_TRANSITION_RATIO:
                patterns.stability = "baja"

        reference = as_local_naive(now)
        recent = [
            stamp
            for stamp in profile.temporal_history[-self._history_size:]
            if reference - as_local_naive(stamp) <= FREQUENT_WINDOW
        ]
        if len(recent) >= FREQUENT_MIN_VISITS:
            patterns.frequency = "alta"
        return patterns

    def summarize_last_interaction(self, profile: PersonalizationProfile, now: datetime) -> Optional[str]:
        if profile.last_interaction_at is None:
            return None
        elapsed = as_local_naive(now) - as_local_naive(profile.last_interaction_at)
        summary = f"última conversación {_elapsed(elapsed)}"
        if profile.emotional_history:
            summary += f", emoción predominante entonces: {profile.emotional_history[-1]}"
        return summary

    def personalize(
        self,
        profile: PersonalizationProfile,
        context: RelevantContext,
        analysis: EmotionAnalysis,
        now: Optional[datetime] = None,
    ) -> PersonalizationConfig:
        moment = now or datetime.now()

        def _resolve() -> PersonalizationConfig:
            period = period_for(moment)
            patterns = self.analyze_patterns(profile, context, analysis, moment)
            style = choose_style(patterns)
            tone = period.tone if patterns.intensity != "alta" else "suave"
            greeting = period.greeting
            if profile.last_interaction_at is not None:
                greeting = f"{greeting}, qué bueno volver a leerte"
            return PersonalizationConfig(
                period=period,
                style=style,
                traits=STYLE_TRAITS[style],
                target_length=blend_length(profile.response_length, period.ideal_length),
                tone=tone,
                greeting=greeting,
                last_interaction=self.summarize_last_interaction(profile, moment),
                patterns=patterns,
            )

        return absorb(
            _resolve,
            default=PersonalizationConfig.default,
            error_cls=PersonalizationError,
            event="personalization.resolve.failed",
            logger=logger,
        ).value

    async def update_interaction_pattern(
        self,
        user_id: str,
        emotion: str,
        topic: str,
        interaction_type: str,
        response_quality: float,
        *,
        now: Optional[datetime] = None,
    ) -> Outcome[bool]:
        moment = now or datetime.now()
        period = period_for(moment)

        async def _write() -> bool:
            await self._repo.get_or_create(user_id)
            size = self._history_size
            await self._repo.append(user_id, "emotional_history", emotion, max_len=size)
            await self._repo.append(user_id, "topical_history", topic, max_len=size)
            await self._repo.append(user_id, "temporal_history", moment, max_len=size)
            await self._repo.increment(user_id, f"period_counters.{period.name}")
            await self._repo.increment(user_id, f"topic_counters.{topic}")
            await self._repo.patch(
                user_id,
                {
                    f"period_last_emotion.{period.name}": emotion,
                    "last_interaction_type": interaction_type,
                    "last_interaction_quality": response_quality,
                    "last_interaction_at": moment,
                },
            )
            return True

        return await absorb_async(
            _write,
            default=lambda: False,
            error_cls=PersonalizationError,
            event="personalization.update.failed",
            logger=logger,
        )


__all__ = [
    "DAY_PERIODS",
    "DayPeriod",
    "PersonalizationConfig",
    "PersonalizationEngine",
    "StyleTraits",
    "UserPatterns",
    "blend_length",
    "choose_style",
    "period_for",
]
