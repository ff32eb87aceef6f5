"""
Message storage gateway.

Persists and retrieves message records. No business rules live here: the
lifecycle manager validates, the reaper decides what is inactive, and the
gateway only stores, finds and deletes.

Two implementations share the ``MessageStore`` contract:

- ``MongoMessageStore``: Beanie/Motor backed, used in production.
- ``InMemoryMessageStore``: process-local, used by tests and local development
  (``STORAGE_BACKEND=memory``).

Both assign a ``bson.ObjectId`` identifier and a UTC ``created_at`` that never
decreases in insertion order.
"""

import functools
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Set

from beanie import PydanticObjectId
from beanie.operators import In, LT, NotIn
from bson import ObjectId
from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from livedrop.core.errors import PersistenceException
from livedrop.core.logging import get_logger, log_database_operation
from livedrop.models.messages import MessageDocument
from livedrop.schemas.message import MessageKind, MessageRecord
from livedrop.utils.time_utils import truncate_to_millis, utc_now

logger = get_logger(__name__)

COLLECTION_NAME = "messages"


def _history_sort_key(record: MessageRecord):
    # ObjectId hex 문자열은 길이가 같으므로 사전순 == 생성순
    return (record.created_at, record.id)


class MessageStore(ABC):
    """Storage gateway contract for message records."""

    @abstractmethod
    async def append(
        self,
        room_code: str,
        kind: MessageKind,
        content: str,
        file_ref: Optional[str] = None,
        file_deletion_token: Optional[str] = None,
    ) -> MessageRecord:
        """Persist a new message, assigning ``id`` and ``created_at``."""

    @abstractmethod
    async def find_by_room(self, room_code: str) -> List[MessageRecord]:
        """All messages of a room, ascending by ``created_at`` then id."""

    @abstractmethod
    async def find_by_id(self, message_id: str) -> Optional[MessageRecord]:
        """A single message, or ``None`` if the id is unknown or malformed."""

    @abstractmethod
    async def delete_by_id(self, message_id: str) -> bool:
        """Delete one message; ``False`` if nothing was deleted."""

    @abstractmethod
    async def active_room_codes(self, since: datetime) -> Set[str]:
        """Room codes with at least one message created at or after ``since``."""

    @abstractmethod
    async def find_outside_rooms(
        self, room_codes: Iterable[str], before: Optional[datetime] = None
    ) -> List[MessageRecord]:
        """Every message whose room code is NOT in ``room_codes``.

        With ``before``, only messages created strictly earlier are returned.
        """

    @abstractmethod
    async def delete_many(
        self,
        message_ids: Iterable[str],
        exclude_rooms: Iterable[str] = (),
        before: Optional[datetime] = None,
    ) -> int:
        """Delete a set of messages by id, returning the deleted count.

        Messages in ``exclude_rooms`` or created at/after ``before`` are kept
        even when their id is listed; the filter is applied by the store in
        the same operation as the delete.
        """

    @abstractmethod
    async def ping(self) -> bool:
        """Whether the backing store is reachable."""


# =============================================================================
# MongoDB (Beanie)
# =============================================================================

def _translate_errors(operation: str):
    """PyMongoError 를 PersistenceException 으로 변환하고 소요 시간을 기록"""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                result = await func(*args, **kwargs)
            except PyMongoError as e:
                logger.error(
                    f"MongoDB {operation} failed: {e}",
                    extra={"event_type": "database_error", "operation": operation},
                    exc_info=True
                )
                raise PersistenceException(operation) from e

            log_database_operation(
                logger,
                operation,
                COLLECTION_NAME,
                duration_ms=(time.time() - start_time) * 1000,
                affected_rows=result if isinstance(result, int) and not isinstance(result, bool) else None
            )
            return result
        return wrapper
    return decorator


def _inactive_filters(room_codes: Iterable[str], before: Optional[datetime]) -> list:
    filters = [NotIn(MessageDocument.room_code, list(room_codes))]
    if before is not None:
        filters.append(LT(MessageDocument.created_at, before))
    return filters


def _parse_object_id(message_id: str) -> Optional[PydanticObjectId]:
    if not isinstance(message_id, str) or not ObjectId.is_valid(message_id):
        return None
    return PydanticObjectId(message_id)


class MongoMessageStore(MessageStore):
    """MongoDB backed message store (requires ``init_mongodb()``)."""

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock

    @_translate_errors("insert")
    async def append(
        self,
        room_code: str,
        kind: MessageKind,
        content: str,
        file_ref: Optional[str] = None,
        file_deletion_token: Optional[str] = None,
    ) -> MessageRecord:
        document = MessageDocument(
            room_code=room_code,
            kind=kind,
            content=content,
            file_ref=file_ref,
            file_deletion_token=file_deletion_token,
            # BSON date 는 밀리초 정밀도: 저장 전 맞춰 두어야 응답과 히스토리가 같은 값을 가짐
            created_at=truncate_to_millis(self._clock()),
        )
        await document.insert()
        return document.to_record()

    @_translate_errors("find_by_room")
    async def find_by_room(self, room_code: str) -> List[MessageRecord]:
        documents = await MessageDocument.find(
            MessageDocument.room_code == room_code
        ).sort([("created_at", ASCENDING), ("_id", ASCENDING)]).to_list()
        return [document.to_record() for document in documents]

    @_translate_errors("find_by_id")
    async def find_by_id(self, message_id: str) -> Optional[MessageRecord]:
        object_id = _parse_object_id(message_id)
        if object_id is None:
            return None
        document = await MessageDocument.get(object_id)
        return document.to_record() if document else None

    @_translate_errors("delete_by_id")
    async def delete_by_id(self, message_id: str) -> bool:
        object_id = _parse_object_id(message_id)
        if object_id is None:
            return False
        result = await MessageDocument.find(MessageDocument.id == object_id).delete()
        return bool(result and result.deleted_count)

    @_translate_errors("distinct_active_rooms")
    async def active_room_codes(self, since: datetime) -> Set[str]:
        room_codes = await MessageDocument.distinct(
            "room_code", {"created_at": {"$gte": since}}
        )
        return set(room_codes)

    @_translate_errors("find_outside_rooms")
    async def find_outside_rooms(
        self, room_codes: Iterable[str], before: Optional[datetime] = None
    ) -> List[MessageRecord]:
        documents = await MessageDocument.find(
            *_inactive_filters(room_codes, before)
        ).sort([("created_at", ASCENDING), ("_id", ASCENDING)]).to_list()
        return [document.to_record() for document in documents]

    @_translate_errors("delete_many")
    async def delete_many(
        self,
        message_ids: Iterable[str],
        exclude_rooms: Iterable[str] = (),
        before: Optional[datetime] = None,
    ) -> int:
        object_ids = [oid for oid in map(_parse_object_id, message_ids) if oid is not None]
        if not object_ids:
            return 0
        result = await MessageDocument.find(
            In(MessageDocument.id, object_ids), *_inactive_filters(exclude_rooms, before)
        ).delete()
        return result.deleted_count if result else 0

    async def ping(self) -> bool:
        from livedrop.database.mongodb import check_mongo_connection
        return await check_mongo_connection()


# =============================================================================
# In-memory
# =============================================================================

class InMemoryMessageStore(MessageStore):
    """Process-local message store.

    Suitable for a single worker and for tests; contents vanish on restart.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock
        self._messages: Dict[str, MessageRecord] = {}
        self._last_created_at: Optional[datetime] = None

    def _next_created_at(self) -> datetime:
        now = self._clock()
        if self._last_created_at is not None and now < self._last_created_at:
            now = self._last_created_at
        self._last_created_at = now
        return now

    async def append(
        self,
        room_code: str,
        kind: MessageKind,
        content: str,
        file_ref: Optional[str] = None,
        file_deletion_token: Optional[str] = None,
    ) -> MessageRecord:
        record = MessageRecord(
            id=str(ObjectId()),
            room_code=room_code,
            kind=kind,
            content=content,
            file_ref=file_ref,
            file_deletion_token=file_deletion_token,
            created_at=self._next_created_at(),
        )
        self._messages[record.id] = record
        return record

    async def find_by_room(self, room_code: str) -> List[MessageRecord]:
        records = [m for m in self._messages.values() if m.room_code == room_code]
        return sorted(records, key=_history_sort_key)

    async def find_by_id(self, message_id: str) -> Optional[MessageRecord]:
        return self._messages.get(message_id)

    async def delete_by_id(self, message_id: str) -> bool:
        return self._messages.pop(message_id, None) is not None

    async def active_room_codes(self, since: datetime) -> Set[str]:
        return {m.room_code for m in self._messages.values() if m.created_at >= since}

    async def find_outside_rooms(
        self, room_codes: Iterable[str], before: Optional[datetime] = None
    ) -> List[MessageRecord]:
        excluded = set(room_codes)
        records = [
            m for m in self._messages.values()
            if m.room_code not in excluded and (before is None or m.created_at < before)
        ]
        return sorted(records, key=_history_sort_key)

    async def delete_many(
        self,
        message_ids: Iterable[str],
        exclude_rooms: Iterable[str] = (),
        before: Optional[datetime] = None,
    ) -> int:
        excluded = set(exclude_rooms)
        deleted = 0
        for message_id in set(message_ids):
            record = self._messages.get(message_id)
            if record is None or record.room_code in excluded:
                continue
            if before is not None and record.created_at >= before:
                continue
            del self._messages[message_id]
            deleted += 1
        return deleted

    async def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self._messages)
