"""
HTTP transport for the workout session API, used by the device client.

Non-2xx answers are mapped onto the shared error taxonomy. Transport failures
(no connectivity, timeouts) surface as ``httpx.TransportError``.
"""
from typing import Any, Dict, Optional
import logging

import httpx

from app.core.config import settings
from app.core.errors import WorkoutSessionError, error_for_status

logger = logging.getLogger(__name__)

# Failures worth retrying later: network trouble and server-side 5xx
RETRYABLE_ERRORS = (httpx.TransportError, WorkoutSessionError)


def _error_message(response: httpx.Response) -> str:
    fallback = f"Request failed with status {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return fallback
    if not isinstance(body, dict):
        return fallback
    error = body.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    detail = body.get("detail")
    if isinstance(detail, str):
        return detail
    if isinstance(detail, list) and detail:
        first = detail[0]
        return str(first.get("msg", first)) if isinstance(first, dict) else str(first)
    return fallback


class WorkoutSessionsApi:
    """Thin async client for ``/workout-sessions``"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            headers=headers,
            timeout=timeout or settings.client_request_timeout_s,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "WorkoutSessionsApi":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        response = await self._client.request(method, path, json=json)
        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning(f"{method} {path} failed: {response.status_code} {message}")
            raise error_for_status(response.status_code, message)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            # Captive portals answer 200 with an HTML page
            logger.warning(f"{method} {path} returned an undecodable {response.status_code} body")
            raise WorkoutSessionError(f"Undecodable response from {path} ({response.status_code})")

    async def start(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/workout-sessions/start", json=payload)

    async def get_active(self) -> Optional[Dict[str, Any]]:
        return await self._request("GET", "/workout-sessions/active")

    async def patch_progress(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PATCH", "/workout-sessions/progress", json=payload)

    async def finish(self, session_id: str) -> Dict[str, Any]:
        return await self._request("POST", "/workout-sessions/finish", json={"session_id": session_id})

    async def health(self) -> bool:
        try:
            await self._request("GET", "/health")
        except RETRYABLE_ERRORS:
            return False
        return True
