from __future__ import annotations

from typing import Any

import httpx


class MaintenanceClient:
    """Machine-authenticated calls to the API's maintenance endpoints."""

    def __init__(
        self,
        base_url: str,
        module_id: str,
        api_key: str,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers = {
            "X-Module-Id": module_id,
            "X-API-Key": api_key,
        }
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def reconcile_employment(self, limit: int = 100) -> dict[str, Any]:
        url = f"{self.base_url}/maintenance/employment/reconcile"
        if self._client is not None:
            response = await self._client.post(url, params={"limit": limit}, headers=self.headers)
        else:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(url, params={"limit": limit}, headers=self.headers)
        response.raise_for_status()
        return response.json()
