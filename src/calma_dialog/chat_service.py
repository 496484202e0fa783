from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import List, Optional, Set

from . import fallbacks
from .analysis.cognitive import CognitivePatternDetector
from .analysis.emotion import EmotionAnalysis, EmotionClassifier
from .analysis.intent import IntentAnalysis, IntentClassifier
from .coherence import ACCEPTED, CORRECTED, REPLACED, CoherenceValidator
from .conversation_state import ConversationState, ConversationStateTracker
from .errors import GenerationError
from .llm_client import OpenAIChatClient
from .memory_aggregator import MemoryAggregator
from .message_log import MessageLog
from .models import Message, StoredMessage
from .persistence import FanoutReport, PersistenceFanout, PersistenceJob
from .personalization import PersonalizationEngine
from .prompting import GenerationRequest, PromptComposer, policy_intent_for
from .settings import Settings, settings as runtime_settings
from .storage import DocumentStore, build_document_store
from .tracking import GoalTracker, ProgressTracker, TherapeuticRecordService

logger = logging.getLogger(__name__)

RESPONSE_QUALITY = {ACCEPTED: 5, CORRECTED: 4, REPLACED: 2}
FALLBACK_QUALITY = 1


@dataclass(slots=True)
class ChatReply:
    text: str
    source: str
    action: str
    analysis: EmotionAnalysis
    intent: IntentAnalysis
    state: ConversationState
    error: Optional[str] = None


class ChatService:
    """Turns one inbound message into a reply and schedules the follow-up writes."""

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        store: Optional[DocumentStore] = None,
        llm_client_factory: Optional[Callable[[], OpenAIChatClient]] = None,
        emotion_classifier: Optional[EmotionClassifier] = None,
        intent_classifier: Optional[IntentClassifier] = None,
        cognitive_detector: Optional[CognitivePatternDetector] = None,
        composer: Optional[PromptComposer] = None,
        coherence: Optional[CoherenceValidator] = None,
        fanout: Optional[PersistenceFanout] = None,
    ) -> None:
        self._settings = settings or runtime_settings
        self._store = store or build_document_store(self._settings.storage)
        self._llm_client_factory = llm_client_factory
        self._llm_client: Optional[OpenAIChatClient] = None

        self._emotion = emotion_classifier or EmotionClassifier()
        self._intent = intent_classifier or IntentClassifier()
        self._cognitive = cognitive_detector or CognitivePatternDetector()
        self._state_tracker = ConversationStateTracker()
        self._composer = composer or PromptComposer(llm_cfg=self._settings.llm)
        self._coherence = coherence or CoherenceValidator(self._settings.coherence)

        self.memory = MemoryAggregator(self._store, cfg=self._settings.memory)
        self.personalization = PersonalizationEngine(self._store)
        self.messages = MessageLog(self._store, cfg=self._settings.storage)
        self.progress = ProgressTracker(self._store)
        self.goals = GoalTracker(self._store)
        self.therapeutic = TherapeuticRecordService(self._store)
        self._fanout = fanout or PersistenceFanout(
            memory=self.memory,
            progress=self.progress,
            goals=self.goals,
            therapeutic=self.therapeutic,
            personalization=self.personalization,
            messages=self.messages,
        )

        self._previous_responses: OrderedDict[str, str] = OrderedDict()
        self._pending: Set[asyncio.Task[FanoutReport]] = set()

        self.last_source: str = "fallback"
        self.last_error: Optional[str] = None

    async def handle_message(
        self,
        message: Message,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ChatReply:
        started = time.perf_counter()
        self._reset_metrics()

        analysis = self._emotion.analyze(message.content).value
        intent = self._intent.analyze(message.content).value
        cognitive = self._cognitive.analyze(message.content).value

        context_outcome, profile_outcome, history, previous = await asyncio.gather(
            self.memory.get_relevant_context(message.user_id),
            self.personalization.get_or_create(message.user_id),
            self._fetch_history(message),
            self._previous_response(message),
        )
        window: List[StoredMessage] = history + [
            StoredMessage(role="user", content=message.content, timestamp=message.timestamp)
        ]
        state = self._state_tracker.evaluate(window).value

        config = self.personalization.personalize(
            profile_outcome.value,
            context_outcome.value,
            analysis,
            message.timestamp,
        )
        request = self._composer.compose(
            content=message.content,
            analysis=analysis,
            intent=intent,
            context=context_outcome.value,
            state=state,
            personalization=config,
            previous_response=previous,
        )

        reply_type = "text"
        try:
            raw = await self._generate(request, cancel_event)
            result = self._coherence.validate(raw, analysis, previous, crisis=request.urgent)
            text, action = result.text, result.action
            quality = RESPONSE_QUALITY[action]
            self.last_source = "llm"
        except GenerationError as exc:
            self.last_error = exc.reason
            self._log_llm_fallback(reason=exc.reason, attempts=exc.attempts)
            kind = fallbacks.SAFETY if request.urgent else fallbacks.ERROR
            text = fallbacks.pick(kind, avoid=previous)
            action = "fallback"
            quality = FALLBACK_QUALITY
            reply_type = "error"

        self._remember_response(message, text)
        self._schedule_fanout(
            PersistenceJob(
                message=message,
                reply=text,
                analysis=analysis,
                intent=intent,
                cognitive=cognitive,
                response_quality=quality,
                interaction_type=policy_intent_for(intent).value,
                reply_type=reply_type,
                duration_seconds=time.perf_counter() - started,
                message_count=len(window),
            )
        )
        return ChatReply(
            text=text,
            source=self.last_source,
            action=action,
            analysis=analysis,
            intent=intent,
            state=state,
            error=self.last_error,
        )

    async def drain(self) -> List[FanoutReport]:
        """Wait for every scheduled fan-out, including ones scheduled meanwhile."""
        reports: List[FanoutReport] = []
        while self._pending:
            batch = list(self._pending)
            self._pending.difference_update(batch)
            done = await asyncio.gather(*batch, return_exceptions=True)
            reports.extend(r for r in done if isinstance(r, FanoutReport))
        return reports

    async def close(self) -> None:
        await self.drain()
        if self._llm_client is not None:
            await self._llm_client.close()
        await self._store.close()

    async def _generate(self, request: GenerationRequest, cancel_event: Optional[asyncio.Event]) -> str:
        client = self._ensure_llm_client()
        return await client.generate(request, cancel_event, timeout=self._settings.llm.timeout)

    def _ensure_llm_client(self) -> OpenAIChatClient:
        if self._llm_client is not None:
            return self._llm_client
        if self._llm_client_factory is not None:
            client = self._llm_client_factory()
        elif self._settings.llm.enabled:
            client = OpenAIChatClient(self._settings.openai, self._settings.llm)
        else:
            raise GenerationError("real LLM usage is disabled", reason=GenerationError.NOT_CONFIGURED)
        self._llm_client = client
        return client

    async def _fetch_history(self, message: Message) -> List[StoredMessage]:
        try:
            return await self.messages.recent(
                message.user_id, message.conversation_id, now=message.timestamp
            )
        except Exception as exc:
            logger.warning("chat.history.fetch.error", extra={"error": repr(exc)})
            return []

    async def _previous_response(self, message: Message) -> Optional[str]:
        key = MessageLog.key(message.user_id, message.conversation_id)
        cached = self._previous_responses.get(key)
        if cached is not None:
            self._previous_responses.move_to_end(key)
            return cached
        try:
            stored = await self.messages.last_assistant_message(message.user_id, message.conversation_id)
        except Exception as exc:
            logger.warning("chat.previous.fetch.error", extra={"error": repr(exc)})
            return None
        return stored.content if stored is not None else None

    def _remember_response(self, message: Message, text: str) -> None:
        key = MessageLog.key(message.user_id, message.conversation_id)
        self._previous_responses[key] = text
        self._previous_responses.move_to_end(key)
        while len(self._previous_responses) > max(1, self._settings.coherence.reply_cache_size):
            self._previous_responses.popitem(last=False)

    def _schedule_fanout(self, job: PersistenceJob) -> None:
        task = asyncio.create_task(self._fanout.run(job))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _reset_metrics(self) -> None:
        self.last_source = "fallback"
        self.last_error = None

    def _log_llm_fallback(self, *, reason: str, attempts: Optional[int] = None) -> None:
        logger.warning("chat.generation.fallback", extra={"reason": reason, "attempts": attempts})


__all__ = ["ChatReply", "ChatService", "RESPONSE_QUALITY"]
