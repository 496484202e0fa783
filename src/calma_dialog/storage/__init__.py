"""Storage scaffolding for calma-dialog."""

from .base import DocumentStore
from .factory import build_document_store
from .memory import InMemoryDocumentStore
from .redis_store import RedisDocumentStore
from .repository import UserRepository, to_document

__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "RedisDocumentStore",
    "UserRepository",
    "build_document_store",
    "to_document",
]
