from __future__ import annotations

"""Longitudinal trackers: progress log, goals and the therapeutic record."""

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Pattern, Sequence, Tuple

from .analysis.text import compile_terms, fold, word_count
from .memory_aggregator import time_bucket_for
from .models import (
    CopingStrategyScore,
    EmotionalProfile,
    EmotionalTrends,
    EmotionFrequency,
    Goal,
    GoalMilestone,
    GoalStatus,
    PredominantEmotion,
    ProgressEntry,
    SessionEmotion,
    TherapeuticRecord,
    TherapeuticSession,
    TopicFrequency,
    TriggerFrequency,
    UserGoals,
    UserProgress,
    clamp_scale,
)
from .storage import DocumentStore, UserRepository

logger = logging.getLogger(__name__)

TOP_N = 5


@dataclass(frozen=True)
class Milestone:
    key: str
    description: str
    levels: Tuple[str, ...]
    pattern: Pattern[str]


MILESTONES: Tuple[Milestone, ...] = (
    Milestone(
        "EMOTIONAL_AWARENESS",
        "Reconocimiento de emociones",
        ("inicial", "progresando", "avanzado"),
        compile_terms(("me siento", "reconozco", "darme cuenta", "identifico")),
    ),
    Milestone(
        "COPING_STRATEGIES",
        "Uso de estrategias de afrontamiento",
        ("aprendiendo", "practicando", "dominando"),
        compile_terms(("respire", "intente", "practique", "use la tecnica")),
    ),
    Milestone(
        "SELF_REFLECTION",
        "Capacidad de autorreflexión",
        ("explorando", "desarrollando", "consolidado"),
        compile_terms(("pienso que", "me di cuenta", "reflexione", "entendi")),
    ),
)


def _ranked(counts: Dict[str, float], total: int) -> List[Tuple[str, float]]:
    ranked = sorted(((name, count / total) for name, count in counts.items()), key=lambda kv: -kv[1])
    return ranked[:TOP_N]


def compute_overall_metrics(entries: Sequence[ProgressEntry]) -> Dict[str, object]:
    """Aggregates over the whole log; ``total_sessions`` is maintained by increment."""
    if not entries:
        return {}
    total = len(entries)
    emotions = Counter(entry.emotional_state.main_emotion for entry in entries)
    topics = Counter(entry.context.topic for entry in entries)

    strategies: Dict[str, List[int]] = {}
    for entry in entries:
        for strategy in entry.context.coping_strategies:
            strategies.setdefault(strategy, []).append(entry.session_metrics.response_quality)
    coping = sorted(
        (
            CopingStrategyScore(strategy=name, effectiveness=sum(q) / len(q), usage_count=len(q))
            for name, q in strategies.items()
        ),
        key=lambda score: -score.effectiveness,
    )[:TOP_N]

    return {
        "average_session_duration": sum(e.session_metrics.duration_seconds for e in entries) / total,
        "emotional_trends": EmotionalTrends(
            predominant_emotions=[
                EmotionFrequency(emotion=name, frequency=freq) for name, freq in _ranked(emotions, total)
            ],
            average_intensity=sum(e.emotional_state.intensity for e in entries) / total,
        ),
        "common_topics": [TopicFrequency(topic=name, frequency=freq) for name, freq in _ranked(topics, total)],
        "effective_coping_strategies": coping,
    }


class ProgressTracker:
    def __init__(self, store: DocumentStore) -> None:
        self._repo: UserRepository[UserProgress] = UserRepository(
            store, collection="progress", model=UserProgress
        )

    @staticmethod
    def milestones_for(text: str) -> List[str]:
        folded = fold(text or "")
        return [milestone.key for milestone in MILESTONES if milestone.pattern.search(folded)]

    async def append_entry(self, user_id: str, entry: ProgressEntry) -> UserProgress:
        await self._repo.get_or_create(user_id)
        await self._repo.append(user_id, "entries", entry)
        await self._repo.increment(user_id, "overall_metrics.total_sessions")
        progress = await self._repo.get_or_create(user_id)
        metrics = compute_overall_metrics(progress.entries)
        fields = {f"overall_metrics.{name}": value for name, value in metrics.items()}
        fields["last_update"] = entry.timestamp
        await self._repo.patch(user_id, fields)
        logger.debug(
            "progress.entry.appended",
            extra={"user_id": user_id, "total_sessions": progress.overall_metrics.total_sessions},
        )
        return await self._repo.get_or_create(user_id)

    async def get(self, user_id: str) -> Optional[UserProgress]:
        return await self._repo.get(user_id)

    async def emotional_profile(self, user_id: str) -> EmotionalProfile:
        progress = await self._repo.get(user_id)
        if progress is None or not progress.entries:
            return EmotionalProfile()

        predominant: Dict[str, PredominantEmotion] = {}
        triggers: Dict[Tuple[str, str], int] = {}
        for entry in progress.entries:
            emotion = entry.emotional_state.main_emotion
            item = predominant.setdefault(emotion, PredominantEmotion(emotion=emotion))
            item.frequency += 1
            bucket = time_bucket_for(entry.timestamp).value
            item.time_pattern[bucket] = item.time_pattern.get(bucket, 0) + 1
            for trigger in entry.context.triggers:
                triggers[(trigger, emotion)] = triggers.get((trigger, emotion), 0) + 1

        return EmotionalProfile(
            predominant_emotions=sorted(predominant.values(), key=lambda p: -p.frequency),
            triggers=[
                TriggerFrequency(trigger=trigger, emotion=emotion, frequency=count)
                for (trigger, emotion), count in sorted(triggers.items(), key=lambda kv: -kv[1])
            ],
            coping_strategies=list(progress.overall_metrics.effective_coping_strategies),
        )


@dataclass(frozen=True)
class GoalRule:
    kind: str
    description: str
    pattern: Pattern[str]
    increment: float


GOAL_RULES: Tuple[GoalRule, ...] = (
    GoalRule(
        "emotional_wellbeing",
        "Bienestar emocional",
        compile_terms(("mejor", r"tranquil[oa]", "calma", "paz", "bienestar")),
        20.0,
    ),
    GoalRule(
        "academic_progress",
        "Progreso académico",
        compile_terms((r"estudi\w*", "aprobar", "entender", "aprender")),
        15.0,
    ),
    GoalRule(
        "self_improvement",
        "Mejora personal",
        compile_terms(("mejorar", "cambiar", "crecer", "desarrollar")),
        10.0,
    ),
)

_FINAL_STATUSES = frozenset({GoalStatus.COMPLETADO, GoalStatus.ABANDONADO})


class GoalTracker:
    """Keyword-driven goal progress. Goals are soft-stated, never removed."""

    def __init__(self, store: DocumentStore, rules: Sequence[GoalRule] = GOAL_RULES) -> None:
        self._rules = tuple(rules)
        self._repo: UserRepository[UserGoals] = UserRepository(store, collection="goals", model=UserGoals)

    async def get(self, user_id: str) -> UserGoals:
        return await self._repo.get_or_create(user_id)

    async def update_from_message(
        self,
        user_id: str,
        text: str,
        emotion: str,
        *,
        now: Optional[datetime] = None,
    ) -> List[str]:
        """Advance every goal whose keywords appear in ``text``; returns the kinds touched."""
        moment = now or datetime.now()
        folded = fold(text or "")
        matched = [rule for rule in self._rules if rule.pattern.search(folded)]
        if not matched:
            return []

        goals = await self._repo.get_or_create(user_id)
        touched: List[str] = []
        for rule in matched:
            goal = goals.goals.get(rule.kind)
            if goal is None:
                goal = Goal(kind=rule.kind, description=rule.description, created_at=moment)
                await self._repo.patch(user_id, {f"goals.{rule.kind}": goal})
            if goal.status in _FINAL_STATUSES:
                continue
            progress = await self._repo.increment(user_id, f"goals.{rule.kind}.progress", rule.increment)
            fields: Dict[str, object] = {f"goals.{rule.kind}.updated_at": moment}
            if progress >= 100.0:
                fields[f"goals.{rule.kind}.progress"] = 100.0
                fields[f"goals.{rule.kind}.status"] = GoalStatus.COMPLETADO
            else:
                fields[f"goals.{rule.kind}.status"] = GoalStatus.EN_PROGRESO
            await self._repo.patch(user_id, fields)
            await self._repo.append(
                user_id,
                f"goals.{rule.kind}.milestones",
                GoalMilestone(date=moment, description=text, emotional_state=emotion),
            )
            touched.append(rule.kind)

        if touched:
            await self._repo.patch(user_id, {"last_update": moment})
        return touched

    async def _transition(self, user_id: str, kind: str, fields: Dict[str, object]) -> bool:
        goals = await self._repo.get_or_create(user_id)
        if kind not in goals.goals:
            return False
        await self._repo.patch(
            user_id,
            {f"goals.{kind}.{name}": value for name, value in fields.items()},
        )
        return True

    async def reset_goal(self, user_id: str, kind: str) -> bool:
        return await self._transition(
            user_id,
            kind,
            {"progress": 0.0, "status": GoalStatus.PENDIENTE, "updated_at": datetime.now()},
        )

    async def abandon_goal(self, user_id: str, kind: str) -> bool:
        return await self._transition(
            user_id,
            kind,
            {"status": GoalStatus.ABANDONADO, "updated_at": datetime.now()},
        )


STABLE_INTENSITY = 5
ENGAGED_WORDS = 10


class TherapeuticRecordService:
    def __init__(self, store: DocumentStore) -> None:
        self._repo: UserRepository[TherapeuticRecord] = UserRepository(
            store, collection="therapeutic", model=TherapeuticRecord
        )

    async def get(self, user_id: str) -> TherapeuticRecord:
        return await self._repo.get_or_create(user_id)

    async def append_session(
        self,
        user_id: str,
        *,
        emotion: str,
        intensity: int,
        tools: Sequence[str],
        text: str,
        resource_mentioned: bool = False,
        now: Optional[datetime] = None,
    ) -> TherapeuticRecord:
        moment = now or datetime.now()
        await self._repo.get_or_create(user_id)
        session = TherapeuticSession(
            timestamp=moment,
            emotion=SessionEmotion(name=emotion, intensity=intensity),
            tools=list(tools),
        )
        await self._repo.append(user_id, "sessions", session)
        await self._repo.patch(user_id, {"current_status": {"emotion": emotion, "last_update": moment}})
        if tools:
            await self._repo.add_to_set(user_id, "active_tools", list(tools))

        deltas = {
            "progress_metrics.emotional_stability": 1 if session.emotion.intensity <= STABLE_INTENSITY else -1,
            "progress_metrics.tool_mastery": 1 if resource_mentioned else 0,
            "progress_metrics.engagement_level": 1 if word_count(text or "") >= ENGAGED_WORDS else -1,
        }
        for path, delta in deltas.items():
            if not delta:
                continue
            # field-level increment, clamped back onto the 1-10 scale afterwards
            value = await self._repo.increment(user_id, path, delta)
            if value != clamp_scale(value):
                await self._repo.patch(user_id, {path: clamp_scale(value)})
        return await self._repo.get_or_create(user_id)


__all__ = [
    "GOAL_RULES",
    "GoalRule",
    "GoalTracker",
    "MILESTONES",
    "Milestone",
    "ProgressTracker",
    "TherapeuticRecordService",
    "compute_overall_metrics",
]
