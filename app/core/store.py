"""In-memory ownership records with per-conversation locking."""
import asyncio
import logging
from collections import OrderedDict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional

from app.schemas import OwnershipRecord, OwnershipState

logger = logging.getLogger(__name__)


class KeyedLock:
    """One asyncio.Lock per key, dropped once nobody holds or waits on it."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def acquire(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class OwnershipStore:
    """Owns every OwnershipRecord. Callers only ever receive copies.

    Mutations are plain synchronous dict operations, so they never interleave on the
    event loop. Sequences of reads and writes that must see a consistent record are
    wrapped in ``locked(conversation_id)``.
    """

    def __init__(self, max_records: Optional[int] = None):
        self._records: "OrderedDict[str, OwnershipRecord]" = OrderedDict()
        self._locks = KeyedLock()
        self.max_records = max_records

    def locked(self, conversation_id: str):
        return self._locks.acquire(conversation_id)

    def _record(self, conversation_id: str) -> OwnershipRecord:
        record = self._records.get(conversation_id)
        if record is None:
            record = OwnershipRecord(conversation_id=conversation_id)
            self._records[conversation_id] = record
            self._evict(keep=conversation_id)
        else:
            self._records.move_to_end(conversation_id)
        return record

    def _evict(self, keep: str) -> None:
        """Drop the least recently used automation-owned records above the size bound."""
        if not self.max_records or len(self._records) <= self.max_records:
            return
        overflow = len(self._records) - self.max_records
        for conversation_id in list(self._records):
            if overflow <= 0:
                break
            record = self._records[conversation_id]
            if conversation_id != keep and record.ownership_state == OwnershipState.WITH_AUTOMATION:
                del self._records[conversation_id]
                overflow -= 1
                logger.debug(f"Evicted ownership record for conversation {conversation_id}")

    def get(self, conversation_id: str) -> OwnershipRecord:
        return self._record(conversation_id).model_copy()

    def peek(self, conversation_id: str) -> Optional[OwnershipRecord]:
        """Like get() but never creates a record."""
        record = self._records.get(conversation_id)
        return record.model_copy() if record else None

    def set_state(self, conversation_id: str, state: OwnershipState) -> None:
        record = self._record(conversation_id)
        record.ownership_state = state
        if state == OwnershipState.WITH_HUMAN:
            record.session_handle = None

    def set_session_handle(self, conversation_id: str, handle: Optional[str]) -> None:
        self._record(conversation_id).session_handle = handle

    def contains(self, conversation_id: str) -> bool:
        return conversation_id in self._records

    def remove(self, conversation_id: str) -> bool:
        return self._records.pop(conversation_id, None) is not None

    def is_escalated(self, conversation_id: str) -> bool:
        record = self._records.get(conversation_id)
        return bool(record and record.is_escalated)

    def escalated_ids(self) -> List[str]:
        return [cid for cid, record in self._records.items() if record.is_escalated]

    def session_handles(self) -> Dict[str, str]:
        return {cid: record.session_handle for cid, record in self._records.items() if record.session_handle}

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
