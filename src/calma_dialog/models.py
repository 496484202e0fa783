"""
Persisted data models for the conversational pipeline.

Every per-user document carries ``user_id`` and has defaults for all other
fields, so a partially written document always validates.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def clamp_scale(value: Any, low: int = 1, high: int = 10) -> int:
    """Clamp ``value`` onto an integer ``low..high`` scale."""
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError):
        number = low
    return max(low, min(high, number))


def as_local_naive(moment: datetime) -> datetime:
    """Aware datetimes become naive local time so they compare with ``datetime.now()``."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)


class TimeBucket(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    LATE_NIGHT = "late_night"


class CommunicationStyle(str, Enum):
    EMPATICO = "empático"
    DIRECTO = "directo"
    EXPLORATORIO = "exploratorio"
    ESTRUCTURADO = "estructurado"


class ResponseLength(str, Enum):
    SHORT = "SHORT"
    MEDIUM = "MEDIUM"
    LONG = "LONG"


class ConversationPhase(str, Enum):
    INITIAL = "INITIAL"
    EXPLORATION = "EXPLORATION"
    INSIGHT = "INSIGHT"
    TOOL_LEARNING = "TOOL_LEARNING"
    PRACTICE = "PRACTICE"
    FOLLOW_UP = "FOLLOW_UP"


class GoalStatus(str, Enum):
    PENDIENTE = "pendiente"
    EN_PROGRESO = "en_progreso"
    COMPLETADO = "completado"
    ABANDONADO = "abandonado"


class Message(BaseModel):
    """Inbound chat message handed over by the transport layer."""
    user_id: str = Field(description="User identifier")
    conversation_id: str = Field(description="Conversation identifier")
    content: str = Field(description="Raw message text")
    timestamp: datetime = Field(default_factory=datetime.now)


# ── memory ledger ──────────────────────────────────────────────────────

class InteractionRecord(BaseModel):
    """One ledger item. Immutable once appended."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=datetime.now)
    emotion: str = "neutral"
    intensity: int = 5
    cognitive_patterns: Dict[str, Dict[str, List[str]]] = Field(default_factory=dict)
    time_bucket: TimeBucket = TimeBucket.MORNING

    @field_validator("intensity", mode="before")
    @classmethod
    def _clamp_intensity(cls, value: Any) -> int:
        return clamp_scale(value)


def _empty_time_buckets() -> Dict[str, int]:
    return {bucket.value: 0 for bucket in TimeBucket}


class MemoryStore(BaseModel):
    user_id: str
    interactions: List[InteractionRecord] = Field(default_factory=list)
    time_buckets: Dict[str, int] = Field(default_factory=_empty_time_buckets)
    last_update: Optional[datetime] = None


# ── personalization ────────────────────────────────────────────────────

class TopicPreferences(BaseModel):
    preferred: List[str] = Field(default_factory=list)
    avoided: List[str] = Field(default_factory=list)


class PersonalizationProfile(BaseModel):
    user_id: str
    communication_style: CommunicationStyle = CommunicationStyle.EMPATICO
    response_length: ResponseLength = ResponseLength.MEDIUM
    topics: TopicPreferences = Field(default_factory=TopicPreferences)
    emotional_history: List[str] = Field(default_factory=list)
    topical_history: List[str] = Field(default_factory=list)
    temporal_history: List[datetime] = Field(default_factory=list)
    period_counters: Dict[str, int] = Field(default_factory=dict)
    period_last_emotion: Dict[str, str] = Field(default_factory=dict)
    topic_counters: Dict[str, int] = Field(default_factory=dict)
    last_interaction_type: Optional[str] = None
    last_interaction_quality: Optional[float] = None
    last_interaction_at: Optional[datetime] = None


# ── progress log ───────────────────────────────────────────────────────

class EmotionalState(BaseModel):
    main_emotion: str = "neutral"
    intensity: int = 5
    secondary_emotions: List[str] = Field(default_factory=list)

    @field_validator("intensity", mode="before")
    @classmethod
    def _clamp_intensity(cls, value: Any) -> int:
        return clamp_scale(value)


class ProgressContext(BaseModel):
    topic: str = "GENERAL"
    triggers: List[str] = Field(default_factory=list)
    coping_strategies: List[str] = Field(default_factory=list)


class SessionMetrics(BaseModel):
    duration_seconds: float = 0.0
    message_count: int = 1
    response_quality: int = 3

    @field_validator("response_quality", mode="before")
    @classmethod
    def _clamp_quality(cls, value: Any) -> int:
        return clamp_scale(value, 1, 5)


class ProgressEntry(BaseModel):
    """Append-only progress snapshot for one exchange."""
    timestamp: datetime = Field(default_factory=datetime.now)
    emotional_state: EmotionalState = Field(default_factory=EmotionalState)
    context: ProgressContext = Field(default_factory=ProgressContext)
    insights: List[str] = Field(default_factory=list)
    session_metrics: SessionMetrics = Field(default_factory=SessionMetrics)


class EmotionFrequency(BaseModel):
    emotion: str
    frequency: float


class TopicFrequency(BaseModel):
    topic: str
    frequency: float


class CopingStrategyScore(BaseModel):
    strategy: str
    effectiveness: float
    usage_count: int = 0


class EmotionalTrends(BaseModel):
    predominant_emotions: List[EmotionFrequency] = Field(default_factory=list)
    average_intensity: float = 0.0


class OverallMetrics(BaseModel):
    total_sessions: int = 0
    average_session_duration: float = 0.0
    emotional_trends: EmotionalTrends = Field(default_factory=EmotionalTrends)
    common_topics: List[TopicFrequency] = Field(default_factory=list)
    effective_coping_strategies: List[CopingStrategyScore] = Field(default_factory=list)


class UserProgress(BaseModel):
    user_id: str
    entries: List[ProgressEntry] = Field(default_factory=list)
    overall_metrics: OverallMetrics = Field(default_factory=OverallMetrics)
    last_update: Optional[datetime] = None


class PredominantEmotion(BaseModel):
    emotion: str
    frequency: int = 0
    time_pattern: Dict[str, int] = Field(default_factory=_empty_time_buckets)


class TriggerFrequency(BaseModel):
    trigger: str
    emotion: str
    frequency: int = 0


class EmotionalProfile(BaseModel):
    predominant_emotions: List[PredominantEmotion] = Field(default_factory=list)
    triggers: List[TriggerFrequency] = Field(default_factory=list)
    coping_strategies: List[CopingStrategyScore] = Field(default_factory=list)


# ── goals ──────────────────────────────────────────────────────────────

class GoalMilestone(BaseModel):
    date: datetime = Field(default_factory=datetime.now)
    description: str = ""
    emotional_state: str = "neutral"


class Goal(BaseModel):
    kind: str
    description: str
    progress: float = 0.0
    status: GoalStatus = GoalStatus.PENDIENTE
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: Optional[datetime] = None
    milestones: List[GoalMilestone] = Field(default_factory=list)

    @field_validator("progress", mode="before")
    @classmethod
    def _clamp_progress(cls, value: Any) -> float:
        try:
            number = float(value)
        except (TypeError, ValueError):
            number = 0.0
        return max(0.0, min(100.0, number))


class UserGoals(BaseModel):
    user_id: str
    goals: Dict[str, Goal] = Field(default_factory=dict)
    last_update: Optional[datetime] = None


# ── therapeutic record ─────────────────────────────────────────────────

class SessionEmotion(BaseModel):
    name: str = "neutral"
    intensity: int = 5

    @field_validator("intensity", mode="before")
    @classmethod
    def _clamp_intensity(cls, value: Any) -> int:
        return clamp_scale(value)


class TherapeuticSession(BaseModel):
    timestamp: datetime = Field(default_factory=datetime.now)
    emotion: SessionEmotion = Field(default_factory=SessionEmotion)
    tools: List[str] = Field(default_factory=list)
    progress: str = "en_curso"


class CurrentStatus(BaseModel):
    emotion: str = "neutral"
    last_update: datetime = Field(default_factory=datetime.now)


class ProgressMetrics(BaseModel):
    emotional_stability: int = 5
    tool_mastery: int = 1
    engagement_level: int = 5

    @field_validator("emotional_stability", "tool_mastery", "engagement_level", mode="before")
    @classmethod
    def _clamp_metric(cls, value: Any) -> int:
        return clamp_scale(value)


class TherapeuticRecord(BaseModel):
    user_id: str
    sessions: List[TherapeuticSession] = Field(default_factory=list)
    current_status: CurrentStatus = Field(default_factory=CurrentStatus)
    active_tools: List[str] = Field(default_factory=list)
    progress_metrics: ProgressMetrics = Field(default_factory=ProgressMetrics)


# ── message log ────────────────────────────────────────────────────────

class StoredMessage(BaseModel):
    role: str
    content: str
    timestamp: datetime = Field(default_factory=datetime.now)
    type: str = "text"
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ConversationLog(BaseModel):
    user_id: str
    conversation_id: str = ""
    messages: List[StoredMessage] = Field(default_factory=list)


__all__ = [
    "clamp_scale",
    "as_local_naive",
    "TimeBucket",
    "CommunicationStyle",
    "ResponseLength",
    "ConversationPhase",
    "GoalStatus",
    "Message",
    "InteractionRecord",
    "MemoryStore",
    "TopicPreferences",
    "PersonalizationProfile",
    "EmotionalState",
    "ProgressContext",
    "SessionMetrics",
    "ProgressEntry",
    "EmotionFrequency",
    "TopicFrequency",
    "CopingStrategyScore",
    "EmotionalTrends",
    "OverallMetrics",
    "UserProgress",
    "PredominantEmotion",
    "TriggerFrequency",
    "EmotionalProfile",
    "GoalMilestone",
    "Goal",
    "UserGoals",
    "SessionEmotion",
    "TherapeuticSession",
    "CurrentStatus",
    "ProgressMetrics",
    "TherapeuticRecord",
    "StoredMessage",
    "ConversationLog",
]
