"""
Services layer for message lifecycle and external storage.

This layer handles:
- Message submit / history / delete with room broadcast
- Message storage gateway (MongoDB, in-memory)
- File object store and deletion backlog
- Inactivity sweeps over all rooms
- Cross-process broadcast relay (Redis)
"""

from .message_service import MessageLifecycleManager
from .reaper import InactivityReaper, ReaperScheduler
from .storage_gateway import MessageStore, MongoMessageStore, InMemoryMessageStore
from .object_store import ObjectStore, LocalObjectStore, FileDeletionBacklog, StoredObject

__all__ = [
    "MessageLifecycleManager",
    "InactivityReaper",
    "ReaperScheduler",
    "MessageStore",
    "MongoMessageStore",
    "InMemoryMessageStore",
    "ObjectStore",
    "LocalObjectStore",
    "FileDeletionBacklog",
    "StoredObject",
]
