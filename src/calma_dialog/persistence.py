from __future__ import annotations

"""Concurrent, independent writes that follow every exchange."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Dict, List

from .analysis.cognitive import CognitiveAnalysis
from .analysis.emotion import EmotionAnalysis
from .analysis.intent import IntentAnalysis
from .analysis.text import fold
from .conversation_state import RESOURCE_PATTERN
from .errors import PersistenceError
from .memory_aggregator import MemoryAggregator, build_interaction_record
from .message_log import MessageLog
from .models import (
    EmotionalState,
    Message,
    ProgressContext,
    ProgressEntry,
    SessionMetrics,
    StoredMessage,
)
from .outcome import Outcome
from .personalization import PersonalizationEngine
from .tracking import GoalTracker, ProgressTracker, TherapeuticRecordService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PersistenceJob:
    message: Message
    reply: str
    analysis: EmotionAnalysis
    intent: IntentAnalysis
    cognitive: CognitiveAnalysis
    response_quality: int
    interaction_type: str = "CONVERSATION"
    reply_type: str = "text"
    duration_seconds: float = 0.0
    message_count: int = 1


@dataclass(slots=True)
class FanoutReport:
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, PersistenceError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


def _raise_absorbed(outcome: Outcome[bool]) -> None:
    if outcome.error is not None:
        raise outcome.error


class PersistenceFanout:
    """Join-all over the per-user stores; one failed write never blocks the rest."""

    def __init__(
        self,
        *,
        memory: MemoryAggregator,
        progress: ProgressTracker,
        goals: GoalTracker,
        therapeutic: TherapeuticRecordService,
        personalization: PersonalizationEngine,
        messages: MessageLog,
    ) -> None:
        self._memory = memory
        self._progress = progress
        self._goals = goals
        self._therapeutic = therapeutic
        self._personalization = personalization
        self._messages = messages

    async def run(self, job: PersistenceJob) -> FanoutReport:
        writes: Dict[str, Awaitable[object]] = {
            "memory": self._write_memory(job),
            "progress": self._write_progress(job),
            "goals": self._write_goals(job),
            "therapeutic": self._write_therapeutic(job),
            "personalization": self._write_personalization(job),
            "messages": self._write_messages(job),
        }
        results = await asyncio.gather(*writes.values(), return_exceptions=True)

        report = FanoutReport()
        for store, result in zip(writes, results):
            if isinstance(result, BaseException):
                error = PersistenceError(store, repr(result))
                error.__cause__ = result
                report.failed[store] = error
                logger.warning(
                    "persistence.write.failed",
                    extra={"store": store, "user_id": job.message.user_id, "error": repr(result)},
                )
            else:
                report.succeeded.append(store)
        logger.debug(
            "persistence.fanout.complete",
            extra={"succeeded": report.succeeded, "failed": list(report.failed)},
        )
        return report

    async def _write_memory(self, job: PersistenceJob) -> None:
        record = build_interaction_record(job.analysis, job.cognitive, job.message.timestamp)
        _raise_absorbed(await self._memory.record_interaction(job.message.user_id, record))

    async def _write_progress(self, job: PersistenceJob) -> None:
        entry = ProgressEntry(
            timestamp=job.message.timestamp,
            emotional_state=EmotionalState(
                main_emotion=job.analysis.label,
                intensity=job.analysis.intensity,
                secondary_emotions=list(job.analysis.secondary_emotions),
            ),
            context=ProgressContext(
                topic=job.intent.topic.value,
                triggers=job.cognitive.triggers(),
                coping_strategies=job.cognitive.coping_strategies(),
            ),
            insights=ProgressTracker.milestones_for(job.message.content),
            session_metrics=SessionMetrics(
                duration_seconds=job.duration_seconds,
                message_count=job.message_count,
                response_quality=job.response_quality,
            ),
        )
        await self._progress.append_entry(job.message.user_id, entry)

    async def _write_goals(self, job: PersistenceJob) -> None:
        await self._goals.update_from_message(
            job.message.user_id,
            job.message.content,
            job.analysis.label,
            now=job.message.timestamp,
        )

    async def _write_therapeutic(self, job: PersistenceJob) -> None:
        mentioned = bool(job.cognitive.coping_strategies()) or bool(
            RESOURCE_PATTERN.search(fold(job.message.content))
        )
        await self._therapeutic.append_session(
            job.message.user_id,
            emotion=job.analysis.label,
            intensity=job.analysis.intensity,
            tools=job.analysis.suggested_tools,
            text=job.message.content,
            resource_mentioned=mentioned,
            now=job.message.timestamp,
        )

    async def _write_personalization(self, job: PersistenceJob) -> None:
        outcome = await self._personalization.update_interaction_pattern(
            job.message.user_id,
            job.analysis.label,
            job.intent.topic.value,
            job.interaction_type,
            job.response_quality,
            now=job.message.timestamp,
        )
        _raise_absorbed(outcome)

    async def _write_messages(self, job: PersistenceJob) -> None:
        metadata = {
            "emotion": job.analysis.label,
            "intensity": job.analysis.intensity,
            "intent": job.intent.intent.value,
            "topic": job.intent.topic.value,
        }
        await self._messages.append(
            job.message.user_id,
            job.message.conversation_id,
            StoredMessage(
                role="user",
                content=job.message.content,
                timestamp=job.message.timestamp,
                metadata=metadata,
            ),
            StoredMessage(role="assistant", content=job.reply, type=job.reply_type, metadata=metadata),
        )


__all__ = ["FanoutReport", "PersistenceFanout", "PersistenceJob"]
