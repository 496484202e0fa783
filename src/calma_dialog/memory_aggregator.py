from __future__ import annotations

"""Per-user interaction ledger and the context derived from it."""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from .analysis.cognitive import CognitiveAnalysis
from .analysis.emotion import EmotionAnalysis
from .errors import MemoryStoreError
from .models import InteractionRecord, MemoryStore, TimeBucket
from .outcome import Outcome, absorb_async
from .settings import MemorySettings, settings
from .storage import DocumentStore, UserRepository

logger = logging.getLogger(__name__)

HIGH_INTENSITY_THRESHOLD = 7
LOW_INTENSITY_THRESHOLD = 3
MAX_WINDOW_SIZE = 50


def time_bucket_for(moment: datetime) -> TimeBucket:
    hour = moment.hour
    if 5 <= hour < 12:
        return TimeBucket.MORNING
    if 12 <= hour < 18:
        return TimeBucket.AFTERNOON
    if 18 <= hour < 22:
        return TimeBucket.EVENING
    return TimeBucket.LATE_NIGHT


def build_interaction_record(
    analysis: EmotionAnalysis,
    cognitive: CognitiveAnalysis,
    moment: Optional[datetime] = None,
) -> InteractionRecord:
    moment = moment or datetime.now()
    return InteractionRecord(
        timestamp=moment,
        emotion=analysis.label,
        intensity=analysis.intensity,
        cognitive_patterns=cognitive.patterns,
        time_bucket=time_bucket_for(moment),
    )


@dataclass(slots=True)
class EmotionalTrend:
    latest: str = "neutral"
    history: List[str] = field(default_factory=list)
    high_intensity_count: int = 0
    low_intensity_count: int = 0
    fluctuation: List[int] = field(default_factory=list)
    dominant: Dict[str, int] = field(default_factory=dict)

    @property
    def dominant_emotion(self) -> Optional[str]:
        if not self.dominant:
            return None
        return max(self.dominant.items(), key=lambda item: item[1])[0]


@dataclass(slots=True)
class RelevantContext:
    emotional_trend: EmotionalTrend = field(default_factory=EmotionalTrend)
    cognitive_history: Dict[str, List[str]] = field(default_factory=dict)
    time_distribution: Dict[str, int] = field(
        default_factory=lambda: {bucket.value: 0 for bucket in TimeBucket}
    )

    @property
    def has_history(self) -> bool:
        return bool(self.emotional_trend.history)

    @classmethod
    def default(cls) -> "RelevantContext":
        return cls()


def build_context(records: Sequence[InteractionRecord], time_buckets: Dict[str, int]) -> RelevantContext:
    """Derive the emotional trend and pattern history from the newest records."""
    if not records:
        context = RelevantContext.default()
        context.time_distribution.update(time_buckets)
        return context

    emotions = [record.emotion for record in records]
    trend = EmotionalTrend(
        latest=emotions[-1],
        history=emotions,
        high_intensity_count=sum(1 for r in records if r.intensity >= HIGH_INTENSITY_THRESHOLD),
        low_intensity_count=sum(1 for r in records if r.intensity <= LOW_INTENSITY_THRESHOLD),
        fluctuation=[record.intensity for record in records],
        dominant=dict(Counter(emotions)),
    )

    history: Dict[str, List[str]] = {}
    for record in records:
        for categories in record.cognitive_patterns.values():
            for category, matches in categories.items():
                seen = history.setdefault(category, [])
                for match in matches:
                    if match not in seen:
                        seen.append(match)

    distribution = {bucket.value: 0 for bucket in TimeBucket}
    distribution.update(time_buckets)
    return RelevantContext(emotional_trend=trend, cognitive_history=history, time_distribution=distribution)


class MemoryAggregator:
    """Bounded per-user window of interaction records.

    Writes are field-level (push, increment, set) so concurrent fan-outs for
    the same user merge instead of overwriting each other.
    """

    def __init__(self, store: DocumentStore, *, cfg: Optional[MemorySettings] = None) -> None:
        self._cfg = cfg or settings.memory
        self._repo: UserRepository[MemoryStore] = UserRepository(
            store, collection="memory", model=MemoryStore
        )

    @property
    def window_size(self) -> int:
        return max(1, min(MAX_WINDOW_SIZE, self._cfg.window_size))

    async def record_interaction(self, user_id: str, record: InteractionRecord) -> Outcome[bool]:
        async def _write() -> bool:
            await self._repo.get_or_create(user_id)
            await self._repo.append(user_id, "interactions", record, max_len=self.window_size)
            await self._repo.increment(user_id, f"time_buckets.{record.time_bucket.value}")
            await self._repo.patch(user_id, {"last_update": record.timestamp})
            return True

        return await absorb_async(
            _write,
            default=lambda: False,
            error_cls=MemoryStoreError,
            event="memory.record.failed",
            logger=logger,
        )

    async def get_relevant_context(self, user_id: str) -> Outcome[RelevantContext]:
        async def _read() -> RelevantContext:
            store = await self._repo.get(user_id)
            if store is None:
                return RelevantContext.default()
            limit = self._cfg.context_records
            window = store.interactions[-limit:] if limit > 0 else []
            return build_context(window, store.time_buckets)

        return await absorb_async(
            _read,
            default=RelevantContext.default,
            error_cls=MemoryStoreError,
            event="memory.context.failed",
            logger=logger,
        )


__all__ = [
    "EmotionalTrend",
    "MemoryAggregator",
    "RelevantContext",
    "build_context",
    "build_interaction_record",
    "time_bucket_for",
]
