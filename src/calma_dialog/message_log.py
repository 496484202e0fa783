from __future__ import annotations

"""Bounded per-conversation message log."""

from datetime import datetime, timedelta
from typing import List, Optional

from .models import ConversationLog, StoredMessage, as_local_naive
from .settings import StorageSettings, settings
from .storage import DocumentStore, UserRepository


def _log_factory(key: str) -> ConversationLog:
    user_id, _, conversation_id = key.partition(":")
    return ConversationLog(user_id=user_id, conversation_id=conversation_id)


class MessageLog:
    def __init__(self, store: DocumentStore, *, cfg: Optional[StorageSettings] = None) -> None:
        self._cfg = cfg or settings.storage
        self._repo: UserRepository[ConversationLog] = UserRepository(
            store, collection="messages", model=ConversationLog, factory=_log_factory
        )

    @staticmethod
    def key(user_id: str, conversation_id: str) -> str:
        return f"{user_id}:{conversation_id}"

    async def append(self, user_id: str, conversation_id: str, *messages: StoredMessage) -> None:
        if not messages:
            return
        key = self.key(user_id, conversation_id)
        await self._repo.get_or_create(key)
        await self._repo.append(key, "messages", *messages, max_len=self._cfg.message_log_size)

    async def recent(
        self,
        user_id: str,
        conversation_id: str,
        *,
        now: Optional[datetime] = None,
    ) -> List[StoredMessage]:
        """Newest ``history_limit`` messages inside the ``history_window_minutes`` window."""
        log = await self._repo.get(self.key(user_id, conversation_id))
        if log is None:
            return []
        cutoff = as_local_naive(now or datetime.now()) - timedelta(
            minutes=self._cfg.history_window_minutes
        )
        window = [message for message in log.messages if as_local_naive(message.timestamp) >= cutoff]
        limit = self._cfg.history_limit
        return window[-limit:] if limit > 0 else []

    async def last_assistant_message(self, user_id: str, conversation_id: str) -> Optional[StoredMessage]:
        log = await self._repo.get(self.key(user_id, conversation_id))
        if log is None:
            return None
        for message in reversed(log.messages):
            if message.role == "assistant" and message.type == "text":
                return message
        return None


__all__ = ["MessageLog"]
