"""Async httpx wrapper for the Hive backend."""

from __future__ import annotations

from typing import Any

import httpx

DEFAULT_BASE_URL = "https://api.localhive.app/v1"


class HiveAPIClient:
    """Async HTTP client that attaches the API key to every request."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        kwargs: dict[str, Any] = {
            "base_url": base_url,
            "timeout": timeout,
            "headers": {"apikey": api_key},
        }
        if transport is not None:
            kwargs["transport"] = transport
        self._client = httpx.AsyncClient(**kwargs)

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._client.request(method, path, **kwargs)
        response.raise_for_status()
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET and return decoded JSON."""
        return await self._request("GET", path, params=params or {})

    async def post(self, path: str, json: dict[str, Any] | None = None) -> Any:
        return await self._request("POST", path, json=json or {})

    async def delete(self, path: str) -> Any:
        return await self._request("DELETE", path)
