from __future__ import annotations

import logging
from typing import Optional

from ..settings import StorageSettings, settings
from .base import DocumentStore
from .memory import InMemoryDocumentStore
from .redis_store import RedisDocumentStore

logger = logging.getLogger(__name__)


def build_document_store(cfg: Optional[StorageSettings] = None) -> DocumentStore:
    """Instantiate the configured storage engine."""
    cfg = cfg or settings.storage
    backend = (cfg.backend or "memory").strip().lower()
    if backend in {"memory", "inmemory", "in-memory"}:
        store: DocumentStore = InMemoryDocumentStore()
    elif backend == "redis":
        store = RedisDocumentStore.from_url(cfg.redis_url, key_prefix=cfg.key_prefix)
    else:
        raise RuntimeError(f"unsupported storage backend: {cfg.backend}")
    logger.info("storage.backend.ready", extra={"backend": store.name})
    return store


__all__ = ["build_document_store"]
