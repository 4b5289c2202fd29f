"""Local read/write-through copy of session trees, keyed by session id."""
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles
import aiofiles.os

from app.core.config import settings

logger = logging.getLogger(__name__)


def _empty() -> Dict[str, Any]:
    return {"active_session_id": None, "sessions": {}}


class SessionCache:
    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or settings.client_session_cache_path)
        self._lock = asyncio.Lock()

    async def _read(self) -> Dict[str, Any]:
        if not await aiofiles.os.path.exists(self.path):
            return _empty()
        async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
            raw = await f.read()
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.error(f"Session cache at {self.path} is unreadable: {e}")
            return _empty()
        data.setdefault("active_session_id", None)
        data.setdefault("sessions", {})
        return data

    async def _write(self, data: Dict[str, Any]) -> None:
        await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        async with aiofiles.open(tmp, "w", encoding="utf-8") as f:
            await f.write(json.dumps(data, indent=2, default=str))
        await aiofiles.os.replace(tmp, self.path)

    async def load_active(self) -> Optional[Dict[str, Any]]:
        async with self._lock:
            data = await self._read()
        active_id = data["active_session_id"]
        return data["sessions"].get(active_id) if active_id else None

    async def save_active(self, session: Optional[Dict[str, Any]]) -> None:
        """Store ``session`` as the active one; None clears the active marker."""
        async with self._lock:
            data = await self._read()
            if session is None:
                active_id = data["active_session_id"]
                if active_id:
                    data["sessions"].pop(active_id, None)
                data["active_session_id"] = None
            else:
                data["sessions"][session["id"]] = session
                data["active_session_id"] = session["id"]
            await self._write(data)
