"""
pytest configuration
Shared fixtures for the calma-dialog test suite.
"""

import os
import sys
from datetime import datetime

import pytest

# Make the src layout importable without an editable install
sys.path.append(os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

from calma_dialog.models import Message  # noqa: E402
from calma_dialog.settings import (  # noqa: E402
    CoherenceSettings,
    LLMSettings,
    MemorySettings,
    OpenAISettings,
    Settings,
    StorageSettings,
)
from calma_dialog.storage import InMemoryDocumentStore  # noqa: E402


def make_settings(
    *,
    enabled: bool = True,
    timeout: float = 1.0,
    window_size: int = 50,
    history_limit: int = 10,
    reply_cache_size: int = 1024,
) -> Settings:
    return Settings(
        openai=OpenAISettings(api_key=None, organization=None, base_url=None),
        llm=LLMSettings(
            enabled=enabled,
            model="dummy",
            top_p=1.0,
            frequency_penalty=0.3,
            presence_penalty=0.6,
            timeout=timeout,
            retry_limit=0,
            retry_backoff_seconds=0.0,
        ),
        memory=MemorySettings(window_size=window_size, context_records=10),
        storage=StorageSettings(
            backend="memory",
            redis_url="redis://localhost:6379/0",
            key_prefix="test",
            message_log_size=200,
            history_window_minutes=30,
            history_limit=history_limit,
        ),
        coherence=CoherenceSettings(min_words=5, reply_cache_size=reply_cache_size),
    )


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def sample_message():
    return Message(
        user_id="user-123",
        conversation_id="conv-1",
        content="Hoy me siento un poco triste por el trabajo",
        timestamp=datetime(2024, 5, 6, 10, 30),
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: unit tests")
    config.addinivalue_line("markers", "integration: integration tests")
    config.addinivalue_line("markers", "slow: slow tests")
