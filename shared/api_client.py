"""
Dashboard API Client

Thin HTTP layer between the console core and the dashboard backend.
Every resource gateway goes through this client; it owns the requests
session, the base URL, timeouts and the classification of failures into
the console error taxonomy.

Blocking requests calls are pushed to a worker thread by the async
wrappers, so on the event loop a network call is the only suspension point.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

import requests

from shared.errors import RejectedError, TransientNetworkError

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = {408, 429}


def error_reason(payload: Any) -> str:
    """Pull a human readable reason out of an error body."""
    if isinstance(payload, dict):
        reason = payload.get("detail") or payload.get("error") or payload.get("message") or payload.get("raw")
        if isinstance(reason, list):
            # FastAPI validation errors: [{"loc": [...], "msg": "..."}]
            reason = "; ".join(str(item.get("msg", item)) if isinstance(item, dict) else str(item) for item in reason)
        return str(reason) if reason else "Request failed"
    return str(payload) if payload else "Request failed"


def unwrap(payload: Any, *keys: str) -> Any:
    """
    Strip the response envelope.

    The backend answers either with the bare value, with {"data": value},
    or with the value under a resource-specific key ({"approvals": [...]}).
    ``keys`` are tried in order before falling back to "data".
    """
    if not isinstance(payload, dict):
        return payload
    for key in keys + ("data",):
        if key in payload and payload[key] is not None:
            return payload[key]
    return payload


class ApiClient:
    """
    Client for the dashboard REST API.

    Usage:
        client = ApiClient("http://127.0.0.1:5000/api/v1", timeout=30)

        ok, payload, error = client.call_api("GET", "/rider/fleet/vehicles")

        vehicles = await client.get("/rider/fleet/vehicles")
        await client.post("/shared/approvals/queue/a1/approve", json={"notes": ""})
    """

    def __init__(self, base_url: str, timeout: float = 30.0, session: Optional[Any] = None):
        """
        Initialize API client.

        Args:
            base_url: API base URL including the version prefix
            timeout: Per-request timeout in seconds
            session: requests-compatible session (default: new requests.Session)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session if session is not None else requests.Session()
        self._session_owned = session is None

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _send(self, method: str, path: str, **kwargs):
        kwargs.setdefault("timeout", self.timeout)
        return self._session.request(method, self._url(path), **kwargs)

    @staticmethod
    def _payload(response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return {"raw": response.text}

    def call_api(self, method: str, path: str, **kwargs) -> Tuple[bool, Any, Optional[str]]:
        """
        Non-raising request: returns (ok, payload, error).

        Network errors are reported the same way as HTTP errors.
        """
        try:
            resp = self._send(method, path, **kwargs)
        except requests.RequestException as e:
            return False, None, f"Network error: {e}"

        payload = self._payload(resp)
        if 200 <= resp.status_code < 300:
            return True, payload, None
        return False, payload, f"HTTP {resp.status_code}: {error_reason(payload)}"

    def request(self, method: str, path: str, **kwargs) -> Any:
        """
        Raising request: returns the decoded JSON payload.

        Raises:
            TransientNetworkError: connection failure, timeout, 5xx, 408, 429
            RejectedError: any other non-2xx answer
        """
        try:
            resp = self._send(method, path, **kwargs)
        except requests.RequestException as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise TransientNetworkError(f"Network error: {e}") from e

        payload = self._payload(resp)
        if 200 <= resp.status_code < 300:
            return payload

        reason = error_reason(payload)
        if resp.status_code >= 500 or resp.status_code in TRANSIENT_STATUS_CODES:
            logger.warning(f"{method} {path} failed: HTTP {resp.status_code}: {reason}")
            raise TransientNetworkError(f"HTTP {resp.status_code}: {reason}", status_code=resp.status_code)

        logger.info(f"{method} {path} rejected: HTTP {resp.status_code}: {reason}")
        raise RejectedError(reason, status_code=resp.status_code)

    async def arequest(self, method: str, path: str, **kwargs) -> Any:
        return await asyncio.to_thread(self.request, method, path, **kwargs)

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        if params:
            params = {k: v for k, v in params.items() if v not in (None, "")}
        return await self.arequest("GET", path, params=params or None)

    async def post(self, path: str, json: Optional[Any] = None) -> Any:
        return await self.arequest("POST", path, json=json)

    async def put(self, path: str, json: Optional[Any] = None) -> Any:
        return await self.arequest("PUT", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.arequest("DELETE", path)

    def close(self):
        if self._session_owned:
            self._session.close()
