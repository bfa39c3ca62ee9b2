"""
Outbound ticketing integration.

Some sites mirror every new topic into an external ticketing system. The
notifier POSTs the author, topic title and category name as query parameters to
a single configured endpoint. Responses are only logged and errors are
swallowed; a ticketing outage must never affect forum delivery.
"""

from __future__ import annotations

import httpx
import structlog

from .metrics import MetricsCollector

log = structlog.get_logger()


class TicketNotifier:
    def __init__(
        self,
        endpoint: str | None,
        request_timeout: int = 10,
        metrics: MetricsCollector | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._endpoint = endpoint
        self._request_timeout = request_timeout
        self._metrics = metrics
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def enabled(self) -> bool:
        return bool(self._endpoint)

    async def open(self) -> None:
        if self.enabled and self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._request_timeout),
                transport=self._transport,
            )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def notify(self, username: str, ticket_name: str, category_name: str) -> None:
        if not self.enabled:
            return
        if self._client is None:
            await self.open()
        assert self._client
        params = {
            "username": username,
            "ticketName": ticket_name,
            "categoryName": category_name,
        }
        try:
            resp = await self._client.post(self._endpoint, params=params)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            log.warning("ticketing.unreachable", endpoint=self._endpoint, error=str(exc))
            self._inc("ticketing_errors_total")
            return

        if resp.status_code == 200:
            log.info("ticketing.posted", ticket=ticket_name, response=resp.text)
            self._inc("ticketing_posts_total")
        else:
            log.warning("ticketing.rejected", status=resp.status_code, ticket=ticket_name)
            self._inc("ticketing_errors_total")

    def _inc(self, name: str) -> None:
        if self._metrics:
            self._metrics.inc(name)
