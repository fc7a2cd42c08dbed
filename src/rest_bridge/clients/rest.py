"""Async JSON client for the REST backend."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from rest_bridge import __version__
from rest_bridge.config import settings
from rest_bridge.exceptions import RESTRequestError

logger = logging.getLogger(__name__)


class RESTClient:
    """Thin async wrapper over ``httpx.AsyncClient`` speaking JSON.

    Usage:
        async with RESTClient() as client:
            payload = await client.get("users/42", params={"fields": "id,name"})
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.rest_base_url).rstrip("/") + "/"
        self._api_key = api_key if api_key is not None else settings.rest_api_key

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout if timeout is not None else settings.rest_timeout),
            headers=self._get_default_headers(),
            transport=transport,
        )

    async def __aenter__(self) -> RESTClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _get_default_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": f"rest-bridge/{__version__}",
        }
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None, params: dict[str, Any] | None = None) -> Any:
        return await self.request("POST", path, json=json, params=params)

    async def put(self, path: str, json: Any = None, params: dict[str, Any] | None = None) -> Any:
        return await self.request("PUT", path, json=json, params=params)

    async def delete(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("DELETE", path, params=params)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (None when empty).

        Raises:
            RESTRequestError: On any non-2xx response.
            httpx.HTTPError: On transport failures.
        """
        start_time = time.time()
        response = await self._client.request(method, path.lstrip("/"), params=params, json=json)

        if settings.log_api_calls:
            elapsed = (time.time() - start_time) * 1000  # ms
            logger.info("[REST] %s %s → %d (%.0fms)", method, path, response.status_code, elapsed)

        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> Any:
        payload: Any = None
        if response.content:
            try:
                payload = response.json()
            except ValueError:
                payload = response.text

        if response.is_success:
            return payload

        message = f"HTTP {response.status_code}"
        if isinstance(payload, dict) and payload.get("message"):
            message = f"{message}: {payload['message']}"
        raise RESTRequestError(message, status_code=response.status_code, payload=payload)
