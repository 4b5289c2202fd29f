"""
Device-side workout session driver.

Every mutation is applied to the local copy first so the user never waits on
the network, then sent directly when online. Anything that cannot be delivered
goes to the offline queue and is flushed on reconnect, after each successful
direct send, and on a periodic tick while work is outstanding.
"""

import asyncio
import copy
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from app.client.api import RETRYABLE_ERRORS, WorkoutSessionsApi
from app.client.offline_queue import (
    OfflineQueue,
    QueueItem,
    QueueItemStatus,
    generate_event_id,
    should_retry_now,
    utcnow,
)
from app.client.session_cache import SessionCache
from app.core.config import settings
from app.core.errors import TERMINAL_ERRORS
from app.services.workout.pointer import Pointer, next_pointer

logger = logging.getLogger(__name__)


def apply_set_update_locally(
    session: Dict[str, Any],
    set_update: Dict[str, Any],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Return a copy of ``session`` with ``set_update`` applied to the matching set.

    Mirrors the server: only the result fields present in ``set_update`` are
    written (an explicit None clears), and ``completed_at`` is stamped when the
    set becomes done, kept while it stays done and cleared when it is undone.
    """
    updated = copy.deepcopy(session)
    item_id = str(set_update["workout_exercise_item_id"])
    is_done = bool(set_update.get("is_done", False))
    for group in updated.get("workout_groups", []):
        for item in group.get("workout_items", []):
            if item["id"] != item_id:
                continue
            for wset in item.get("sets", []):
                if wset["set_number"] != set_update["set_number"]:
                    continue
                for field in ("weight", "reps", "rpe"):
                    if field in set_update:
                        wset[field] = set_update[field]
                was_done = bool(wset.get("is_done"))
                wset["is_done"] = is_done
                if is_done and not was_done:
                    wset["completed_at"] = (now or utcnow()).isoformat()
                elif not is_done:
                    wset["completed_at"] = None
    return updated


class WorkoutSyncClient:
    """Optimistic session state plus at-least-once delivery of progress"""

    def __init__(
        self,
        api: WorkoutSessionsApi,
        queue: Optional[OfflineQueue] = None,
        cache: Optional[SessionCache] = None,
        online: bool = True,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.api = api
        self.queue = queue or OfflineQueue(clock=clock)
        self.cache = cache or SessionCache()
        self.is_online = online
        self.is_syncing = False
        self.active_session: Optional[Dict[str, Any]] = None
        self._clock = clock or utcnow
        self._flush_in_flight = False

    # --------- state helpers ---------

    async def _set_active(self, session: Optional[Dict[str, Any]]) -> None:
        self.active_session = session
        await self.cache.save_active(session)

    @property
    def current_pointer(self) -> Optional[Pointer]:
        if not self.active_session:
            return None
        return Pointer.from_dict(self.active_session.get("current_pointer"))

    def current_target(self) -> Optional[Dict[str, Any]]:
        """The (item id, set number) the pointer is on, or None outside the snapshot."""
        pointer = self.current_pointer
        if pointer is None:
            return None
        groups = self.active_session.get("workout_groups", [])
        if pointer.group_index >= len(groups):
            return None
        items = groups[pointer.group_index].get("workout_items", [])
        if pointer.exercise_index >= len(items):
            return None
        return {
            "workout_exercise_item_id": items[pointer.exercise_index]["id"],
            "set_number": pointer.set_number,
        }

    async def pending_count(self) -> int:
        items = await self.queue.items()
        return sum(
            1 for item in items
            if item.status in (QueueItemStatus.PENDING, QueueItemStatus.FAILED)
        )

    async def rejected_items(self) -> List[QueueItem]:
        items = await self.queue.items()
        return [item for item in items if item.status == QueueItemStatus.REJECTED]

    # --------- lifecycle ---------

    async def boot(self) -> Optional[Dict[str, Any]]:
        """Restore local state, then prefer server state when nothing is owed to it."""
        unacked = await self.queue.unacked()
        local = await self.cache.load_active()
        self.active_session = local

        if not self.is_online:
            return self.active_session
        try:
            remote = await self.api.get_active()
        except TERMINAL_ERRORS as e:
            logger.warning(f"Boot fetch rejected: {e}")
            return self.active_session
        except RETRYABLE_ERRORS as e:
            logger.info(f"Boot fetch failed, keeping local session: {e}")
            return self.active_session

        if remote and (local is None or not unacked):
            await self._set_active(remote)
        return self.active_session

    async def start_session(
        self,
        routine_id: str,
        day_id: str,
        overrides: Optional[Dict[str, int]] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"routine_id": str(routine_id), "day_id": str(day_id)}
        if overrides:
            payload["overrides"] = overrides
        session = await self.api.start(payload)
        await self._set_active(session)
        return session

    async def finish_session(self) -> None:
        if not self.active_session:
            return
        session_id = self.active_session["id"]
        if self.is_online:
            await self.flush(ignore_backoff=True)
            try:
                await self.api.finish(session_id)
            except TERMINAL_ERRORS as e:
                logger.warning(f"Finish of {session_id} rejected: {e}")
            except RETRYABLE_ERRORS as e:
                logger.info(f"Finish of {session_id} not delivered, finishing locally: {e}")
        await self._set_active(None)

    async def reset_local_session(self) -> None:
        await self._set_active(None)

    # --------- mutations ---------

    async def save_pointer(self, pointer: Pointer) -> None:
        if not self.active_session:
            return
        session = copy.deepcopy(self.active_session)
        session["current_pointer"] = pointer.to_dict()
        await self._set_active(session)
        await self._deliver({"event_id": generate_event_id(), "current_pointer": pointer.to_dict()})

    async def save_set(self, set_update: Dict[str, Any]) -> None:
        if not self.active_session or not set_update:
            return
        await self._set_active(apply_set_update_locally(self.active_session, set_update, self._clock()))
        payload_update = {**set_update, "workout_exercise_item_id": str(set_update["workout_exercise_item_id"])}
        await self._deliver({"event_id": generate_event_id(), "set_update": payload_update})

    async def advance(self) -> Optional[Pointer]:
        """Move to the next position; None when the snapshot is exhausted."""
        pointer = self.current_pointer
        if pointer is None:
            return None
        nxt = next_pointer(pointer, self.active_session.get("workout_groups", []))
        if nxt is not None:
            await self.save_pointer(nxt)
        return nxt

    async def complete_current_set(
        self,
        weight: Optional[float] = None,
        reps: Optional[int] = None,
        rpe: Optional[float] = None,
    ) -> Optional[Pointer]:
        target = self.current_target()
        if target is None:
            return None
        update = {**target, "is_done": True}
        for field, value in (("weight", weight), ("reps", reps), ("rpe", rpe)):
            if value is not None:
                update[field] = value
        await self.save_set(update)
        return await self.advance()

    async def _deliver(self, payload: Dict[str, Any]) -> None:
        if not self.is_online:
            await self.queue.enqueue(payload)
            return
        try:
            updated = await self.api.patch_progress(payload)
        except TERMINAL_ERRORS as e:
            await self.queue.add_rejected(payload, e)
            await self.reconcile_with_server(force=True)
            return
        except RETRYABLE_ERRORS as e:
            logger.info(f"Direct send failed, queueing: {e}")
            await self.queue.enqueue(payload)
            return
        except Exception:
            logger.exception("Unexpected error on direct send, queueing")
            await self.queue.enqueue(payload)
            return

        if not await self.queue.unacked():
            await self._set_active(updated)
        await self.flush()

    # --------- sync ---------

    async def flush(self, only_failed: bool = False, ignore_backoff: bool = False) -> int:
        """Deliver every due queue item. Returns how many were acknowledged."""
        if not self.is_online or self._flush_in_flight:
            return 0
        self._flush_in_flight = True
        self.is_syncing = True
        acked = 0
        rejected = False
        last_snapshot: Optional[Dict[str, Any]] = None
        try:
            now = self._clock()
            for item in await self.queue.items():
                if only_failed and item.status != QueueItemStatus.FAILED:
                    continue
                if not should_retry_now(item, now, ignore_backoff):
                    continue

                await self.queue.mark_sending(item.event_id)
                try:
                    snapshot = await self.api.patch_progress(item.payload)
                except TERMINAL_ERRORS as e:
                    await self.queue.mark_rejected(item.event_id, e)
                    rejected = True
                except RETRYABLE_ERRORS as e:
                    await self.queue.mark_failed(item.event_id, e)
                except Exception as e:
                    logger.exception(f"Unexpected error sending event {item.event_id}")
                    await self.queue.mark_failed(item.event_id, e)
                else:
                    await self.queue.ack(item.event_id)
                    last_snapshot = snapshot
                    acked += 1
        finally:
            self._flush_in_flight = False
            self.is_syncing = False

        if rejected:
            await self.reconcile_with_server(force=True)
        elif last_snapshot is not None and not await self.queue.unacked():
            await self._set_active(last_snapshot)
        if acked:
            logger.info(f"Flushed {acked} queued event(s)")
        return acked

    async def reconcile_with_server(self, force: bool = False) -> None:
        """
        Replace the local copy with server truth.

        Without ``force`` the local copy wins while the queue still owes events.
        ``force`` is used after a server rejection, where the optimistic copy
        can no longer be trusted.
        """
        if not self.is_online:
            return
        if not force and await self.queue.unacked():
            return
        try:
            remote = await self.api.get_active()
        except TERMINAL_ERRORS + RETRYABLE_ERRORS as e:
            logger.info(f"Reconcile skipped: {e}")
            return
        if remote is None and not force:
            return
        if remote != self.active_session:
            await self._set_active(remote)

    async def set_online(self, online: bool) -> None:
        was_online = self.is_online
        self.is_online = online
        if online and not was_online:
            logger.info("Connectivity restored, flushing offline queue")
            await self.force_sync()

    async def check_connectivity(self) -> bool:
        await self.set_online(await self.api.health())
        return self.is_online

    async def force_sync(self) -> None:
        await self.flush(ignore_backoff=True)
        await self.reconcile_with_server()

    async def retry_failed(self) -> None:
        await self.flush(only_failed=True, ignore_backoff=True)
        await self.reconcile_with_server()

    async def run(self, stop: asyncio.Event, interval: Optional[float] = None) -> None:
        """Periodic flush while the queue has outstanding work."""
        interval = interval or settings.client_flush_interval_s
        while not stop.is_set():
            try:
                if self.is_online and await self.queue.unacked():
                    await self.flush()
            except Exception:
                logger.exception("Periodic flush failed")
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
