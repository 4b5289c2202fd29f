"""
Device-resident queue of progress mutations the server has not acknowledged.

Items are persisted to a JSON file on every change so a killed app resumes with
the same pending/failed work. Delivery order is not guaranteed: every payload
carries its own pointer or set target, so replays in any order are safe.
"""

import asyncio
import json
import logging
import re
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import aiofiles
import aiofiles.os

from app.core.config import settings

logger = logging.getLogger(__name__)

# Escalating retry delays, indexed by attempts - 1 and clamped at both ends
BACKOFF_SCHEDULE_MS = (1_000, 2_000, 5_000, 10_000, 30_000)


class QueueItemStatus(str, Enum):
    PENDING = "pending"
    SENDING = "sending"
    ACKED = "acked"
    FAILED = "failed"
    REJECTED = "rejected"


ALLOWED_TRANSITIONS = {
    QueueItemStatus.PENDING: {QueueItemStatus.SENDING},
    QueueItemStatus.SENDING: {
        QueueItemStatus.ACKED,
        QueueItemStatus.FAILED,
        QueueItemStatus.REJECTED,
        QueueItemStatus.PENDING,
    },
    QueueItemStatus.FAILED: {QueueItemStatus.SENDING},
    QueueItemStatus.ACKED: set(),
    QueueItemStatus.REJECTED: set(),
}


class InvalidQueueTransition(ValueError):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class QueueItem:
    event_id: str
    payload: Dict[str, Any]
    created_at: datetime
    updated_at: datetime
    status: QueueItemStatus = QueueItemStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None
    next_retry_at: Optional[datetime] = None
    type: str = "PATCH_PROGRESS"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "type": self.type,
            "payload": self.payload,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "status": self.status.value,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "next_retry_at": self.next_retry_at.isoformat() if self.next_retry_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueueItem":
        return cls(
            event_id=data["event_id"],
            type=data.get("type", "PATCH_PROGRESS"),
            payload=data.get("payload") or {},
            created_at=_parse_dt(data["created_at"]),
            updated_at=_parse_dt(data.get("updated_at") or data["created_at"]),
            status=QueueItemStatus(data.get("status", QueueItemStatus.PENDING.value)),
            attempts=int(data.get("attempts", 0)),
            last_error=data.get("last_error"),
            next_retry_at=_parse_dt(data.get("next_retry_at")),
        )


def generate_event_id() -> str:
    return str(uuid.uuid4())


def create_queue_item(payload: Dict[str, Any], event_id: Optional[str] = None, now: Optional[datetime] = None) -> QueueItem:
    now = now or utcnow()
    event_id = event_id or payload.get("event_id") or generate_event_id()
    # The payload must carry the same id the server dedupes on
    payload = {**payload, "event_id": event_id}
    return QueueItem(event_id=event_id, payload=payload, created_at=now, updated_at=now)


def backoff_ms(attempts: int) -> int:
    index = min(max(attempts - 1, 0), len(BACKOFF_SCHEDULE_MS) - 1)
    return BACKOFF_SCHEDULE_MS[index]


def next_retry_at(attempts: int, now: datetime) -> datetime:
    return now + timedelta(milliseconds=backoff_ms(attempts))


def should_retry_now(item: QueueItem, now: datetime, ignore_backoff: bool = False) -> bool:
    if item.status == QueueItemStatus.PENDING:
        return True
    if item.status != QueueItemStatus.FAILED:
        return False
    if ignore_backoff or item.next_retry_at is None:
        return True
    return item.next_retry_at <= now


def short_error_message(error: BaseException, limit: Optional[int] = None) -> str:
    limit = limit or settings.client_error_max_length
    message = re.sub(r"\s+", " ", str(error)).strip() or type(error).__name__
    if len(message) <= limit:
        return message
    return message[: limit - 3] + "..."


def transition(item: QueueItem, status: QueueItemStatus, now: datetime, **changes: Any) -> QueueItem:
    if status not in ALLOWED_TRANSITIONS[item.status]:
        raise InvalidQueueTransition(f"{item.event_id}: {item.status.value} -> {status.value}")
    return replace(item, status=status, updated_at=now, **changes)


class OfflineQueue:
    """
    Durable multiset of QueueItems backed by a JSON file.

    All writes go through one asyncio lock so concurrent enqueue/update calls
    never overwrite each other's view of the persisted list.
    """

    def __init__(self, path: Optional[str] = None, clock: Optional[Callable[[], datetime]] = None):
        self.path = Path(path or settings.client_queue_path)
        self._clock = clock or utcnow
        self._lock = asyncio.Lock()
        self._items: Optional[List[QueueItem]] = None

    async def _read_file(self) -> List[QueueItem]:
        if not await aiofiles.os.path.exists(self.path):
            return []
        async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
            raw = await f.read()
        if not raw.strip():
            return []
        try:
            return [QueueItem.from_dict(entry) for entry in json.loads(raw)]
        except (ValueError, KeyError, TypeError) as e:
            # Keep the unreadable file around instead of silently losing it
            corrupt = self.path.with_suffix(self.path.suffix + ".corrupt")
            await aiofiles.os.replace(self.path, corrupt)
            logger.error(f"Offline queue at {self.path} is unreadable ({e}); moved to {corrupt}")
            return []

    async def _write_file(self, items: List[QueueItem]) -> None:
        await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        async with aiofiles.open(tmp, "w", encoding="utf-8") as f:
            await f.write(json.dumps([item.to_dict() for item in items], indent=2))
        await aiofiles.os.replace(tmp, self.path)

    async def _ensure_loaded(self) -> List[QueueItem]:
        if self._items is None:
            items = await self._read_file()
            # A crash while sending leaves items marked sending; they were never acked
            recovered = [
                transition(item, QueueItemStatus.PENDING, item.updated_at)
                if item.status == QueueItemStatus.SENDING else item
                for item in items
            ]
            self._items = recovered
            if recovered != items:
                await self._write_file(recovered)
        return self._items

    async def _persist(self, items: List[QueueItem]) -> None:
        self._items = items
        await self._write_file(items)

    async def load(self) -> List[QueueItem]:
        async with self._lock:
            return list(await self._ensure_loaded())

    async def items(self) -> List[QueueItem]:
        return await self.load()

    async def enqueue(self, payload: Dict[str, Any], event_id: Optional[str] = None) -> QueueItem:
        async with self._lock:
            items = await self._ensure_loaded()
            item = create_queue_item(payload, event_id=event_id, now=self._clock())
            await self._persist([*items, item])
        logger.info(f"Queued event {item.event_id} ({len(items) + 1} in queue)")
        return item

    async def _update(self, event_id: str, fn: Callable[[QueueItem], QueueItem]) -> Optional[QueueItem]:
        async with self._lock:
            items = await self._ensure_loaded()
            updated = None
            next_items = []
            for item in items:
                if item.event_id == event_id:
                    updated = fn(item)
                    next_items.append(updated)
                else:
                    next_items.append(item)
            if updated is not None:
                await self._persist(next_items)
            return updated

    async def mark_sending(self, event_id: str) -> Optional[QueueItem]:
        now = self._clock()
        return await self._update(
            event_id, lambda item: transition(item, QueueItemStatus.SENDING, now, last_error=None)
        )

    async def mark_failed(self, event_id: str, error: BaseException) -> Optional[QueueItem]:
        now = self._clock()

        def _fail(item: QueueItem) -> QueueItem:
            attempts = item.attempts + 1
            return transition(
                item,
                QueueItemStatus.FAILED,
                now,
                attempts=attempts,
                last_error=short_error_message(error),
                next_retry_at=next_retry_at(attempts, now),
            )

        failed = await self._update(event_id, _fail)
        if failed:
            logger.warning(
                f"Event {event_id} failed (attempt {failed.attempts}), retry at {failed.next_retry_at.isoformat()}"
            )
        return failed

    async def mark_rejected(self, event_id: str, error: BaseException) -> Optional[QueueItem]:
        now = self._clock()
        rejected = await self._update(
            event_id,
            lambda item: transition(
                item,
                QueueItemStatus.REJECTED,
                now,
                attempts=item.attempts + 1,
                last_error=short_error_message(error),
                next_retry_at=None,
            ),
        )
        if rejected:
            logger.warning(f"Event {event_id} rejected by server: {rejected.last_error}")
        return rejected

    async def ack(self, event_id: str) -> bool:
        """Drop an item the server confirmed."""
        now = self._clock()
        async with self._lock:
            items = await self._ensure_loaded()
            remaining = []
            acked = False
            for item in items:
                if item.event_id == event_id:
                    transition(item, QueueItemStatus.ACKED, now)
                    acked = True
                else:
                    remaining.append(item)
            if acked:
                await self._persist(remaining)
            return acked

    async def add_rejected(self, payload: Dict[str, Any], error: BaseException) -> QueueItem:
        """Record a mutation the server refused on direct send so it can be surfaced."""
        now = self._clock()
        item = create_queue_item(payload, now=now)
        item = replace(
            item,
            status=QueueItemStatus.REJECTED,
            attempts=1,
            last_error=short_error_message(error),
        )
        async with self._lock:
            items = await self._ensure_loaded()
            await self._persist([*items, item])
        return item

    async def dismiss(self, event_id: str) -> bool:
        """Remove a rejected item once the user has seen it."""
        async with self._lock:
            items = await self._ensure_loaded()
            remaining = [
                item for item in items
                if not (item.event_id == event_id and item.status == QueueItemStatus.REJECTED)
            ]
            if len(remaining) == len(items):
                return False
            await self._persist(remaining)
            return True

    async def unacked(self) -> List[QueueItem]:
        """Items still owed to the server (pending, sending or failed)."""
        items = await self.load()
        return [
            item for item in items
            if item.status in (QueueItemStatus.PENDING, QueueItemStatus.SENDING, QueueItemStatus.FAILED)
        ]

    async def clear(self) -> None:
        async with self._lock:
            await self._persist([])
