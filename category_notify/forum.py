"""
Client for the host forum's internal notification and email endpoints.

Rendering notifications and emails stays with the forum; this service only
decides who gets what and calls:

- POST /api/category-notifications/notifications       create a notification
- POST /api/category-notifications/notifications/push  push it to uids
- POST /api/category-notifications/email               mail one user
"""

from __future__ import annotations

from typing import Any

import httpx

from .ports import EmailService, NotificationService

API_PREFIX = "/api/category-notifications"


class ForumClient(NotificationService, EmailService):
    def __init__(
        self,
        base_url: str,
        api_token: str | None = None,
        verify_tls: bool = True,
        request_timeout: int = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_token = api_token
        self._verify_tls = verify_tls
        self._request_timeout = request_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def open(self) -> None:
        headers = {}
        if self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"
        self._client = httpx.AsyncClient(
            base_url=f"{self._base_url}{API_PREFIX}",
            headers=headers,
            timeout=httpx.Timeout(self._request_timeout),
            verify=self._verify_tls,
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def create(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        assert self._client
        resp = await self._client.post("/notifications", json=payload)
        resp.raise_for_status()
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json() or None

    async def push(self, notification: dict[str, Any], uids: list[int]) -> None:
        assert self._client
        resp = await self._client.post(
            "/notifications/push",
            json={"notification": notification, "uids": uids},
        )
        resp.raise_for_status()

    async def send(self, template: str, uid: int, params: dict[str, Any]) -> None:
        assert self._client
        resp = await self._client.post(
            "/email",
            json={"template": template, "uid": uid, "params": params},
        )
        resp.raise_for_status()

    async def check_health(self) -> bool:
        if not self._client:
            return False
        try:
            resp = await self._client.get("/health")
            return resp.status_code == 200
        except Exception:
            return False
