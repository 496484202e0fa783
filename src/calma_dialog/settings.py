from __future__ import annotations

"""Runtime configuration helpers for calma-dialog."""

import os
from dataclasses import dataclass

_BOOL_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _BOOL_TRUTHY


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class OpenAISettings:
    api_key: str | None
    organization: str | None
    base_url: str | None


@dataclass(frozen=True)
class LLMSettings:
    enabled: bool
    model: str
    top_p: float
    frequency_penalty: float
    presence_penalty: float
    timeout: float
    retry_limit: int
    retry_backoff_seconds: float


@dataclass(frozen=True)
class MemorySettings:
    window_size: int
    context_records: int


@dataclass(frozen=True)
class StorageSettings:
    backend: str
    redis_url: str
    key_prefix: str
    message_log_size: int
    history_window_minutes: int
    history_limit: int


@dataclass(frozen=True)
class CoherenceSettings:
    min_words: int
    reply_cache_size: int = 1024


@dataclass(frozen=True)
class Settings:
    openai: OpenAISettings
    llm: LLMSettings
    memory: MemorySettings
    storage: StorageSettings
    coherence: CoherenceSettings


def load_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""

    llm_settings = LLMSettings(
        enabled=_env_bool("ENABLE_REAL_LLM", False),
        model=os.getenv("LLM_MODEL", "gpt-4o-mini"),
        top_p=_env_float("LLM_TOP_P", 1.0),
        frequency_penalty=_env_float("LLM_FREQUENCY_PENALTY", 0.3),
        presence_penalty=_env_float("LLM_PRESENCE_PENALTY", 0.6),
        timeout=_env_float("LLM_REQUEST_TIMEOUT", 30.0),
        retry_limit=_env_int("LLM_RETRY_LIMIT", 1),
        retry_backoff_seconds=_env_float("LLM_RETRY_BACKOFF_SECONDS", 0.5),
    )

    openai_settings = OpenAISettings(
        api_key=os.getenv("OPENAI_API_KEY"),
        organization=os.getenv("OPENAI_ORG_ID"),
        base_url=os.getenv("OPENAI_BASE_URL"),
    )

    memory_settings = MemorySettings(
        window_size=_env_int("MEMORY_WINDOW_SIZE", 50),
        context_records=_env_int("MEMORY_CONTEXT_RECORDS", 10),
    )

    storage_settings = StorageSettings(
        backend=os.getenv("STORAGE_BACKEND", "memory"),
        redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        key_prefix=os.getenv("STORAGE_KEY_PREFIX", "calma"),
        message_log_size=_env_int("MESSAGE_LOG_SIZE", 200),
        history_window_minutes=_env_int("HISTORY_WINDOW_MINUTES", 30),
        history_limit=_env_int("HISTORY_LIMIT", 10),
    )

    coherence_settings = CoherenceSettings(
        min_words=_env_int("COHERENCE_MIN_WORDS", 5),
        reply_cache_size=_env_int("REPLY_CACHE_SIZE", 1024),
    )

    return Settings(
        openai=openai_settings,
        llm=llm_settings,
        memory=memory_settings,
        storage=storage_settings,
        coherence=coherence_settings,
    )


settings = load_settings()

__all__ = [
    "Settings",
    "LLMSettings",
    "OpenAISettings",
    "MemorySettings",
    "StorageSettings",
    "CoherenceSettings",
    "settings",
    "load_settings",
]
