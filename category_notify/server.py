"""
HTTP surface for the host forum.

Exposes:
- GET    /health                                 JSON health status
- GET    /metrics                                Prometheus-compatible metrics
- GET    /api/categories/{cid}/subscribers/{uid} subscription status
- PUT    /api/categories/{cid}/subscribers/{uid} subscribe
- DELETE /api/categories/{cid}/subscribers/{uid} unsubscribe
- POST   /hooks/topic                            new topic event
- POST   /hooks/reply                            new reply event
- POST   /hooks/user-deleted                     account deletion
"""

from __future__ import annotations

import json
from typing import Any, Awaitable, Callable

import structlog
from aiohttp import web
from pydantic import ValidationError

from .handlers import CategoryNotifications
from .metrics import MetricsCollector
from .models import normalize_id

log = structlog.get_logger()

Probe = Callable[[], Awaitable[bool]]


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


class ApiServer:
    """aiohttp application wrapping CategoryNotifications."""

    def __init__(
        self,
        notifications: CategoryNotifications,
        host: str = "127.0.0.1",
        port: int = 8080,
        metrics: MetricsCollector | None = None,
        store_probe: Probe | None = None,
        forum_probe: Probe | None = None,
    ):
        self._notifications = notifications
        self._host = host
        self._port = port
        self._metrics = metrics or MetricsCollector()
        self._store_probe = store_probe
        self._forum_probe = forum_probe
        self._runner: web.AppRunner | None = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/health", self._health_handler)
        app.router.add_get("/metrics", self._metrics_handler)
        route = "/api/categories/{cid}/subscribers/{uid}"
        app.router.add_get(route, self._status_handler)
        app.router.add_put(route, self._subscribe_handler)
        app.router.add_delete(route, self._unsubscribe_handler)
        app.router.add_post("/hooks/topic", self._topic_handler)
        app.router.add_post("/hooks/reply", self._reply_handler)
        app.router.add_post("/hooks/user-deleted", self._user_deleted_handler)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    # --- Health ---

    async def _health_handler(self, request: web.Request) -> web.Response:
        store_ok = await self._store_probe() if self._store_probe else True
        forum_ok = await self._forum_probe() if self._forum_probe else True
        body = {
            "status": "healthy" if store_ok and forum_ok else "degraded",
            "store_reachable": store_ok,
            "forum_reachable": forum_ok,
            "background_tasks": len(self._notifications.background),
        }
        return web.json_response(body)

    async def _metrics_handler(self, request: web.Request) -> web.Response:
        return web.Response(
            text=self._metrics.to_prometheus(),
            content_type="text/plain",
        )

    # --- Subscriptions ---

    @staticmethod
    def _ids(request: web.Request) -> tuple[int, int]:
        try:
            return (
                normalize_id(request.match_info["uid"]),
                normalize_id(request.match_info["cid"]),
            )
        except ValueError as exc:
            raise web.HTTPBadRequest(
                text=json.dumps({"error": str(exc)}), content_type="application/json"
            )

    async def _status_handler(self, request: web.Request) -> web.Response:
        uid, cid = self._ids(request)
        subscribed = await self._notifications.is_subscribed(uid, cid)
        return web.json_response({"uid": uid, "cid": cid, "subscribed": subscribed})

    async def _subscribe_handler(self, request: web.Request) -> web.Response:
        uid, cid = self._ids(request)
        await self._notifications.subscribe(uid, cid)
        return web.json_response({"uid": uid, "cid": cid, "subscribed": True})

    async def _unsubscribe_handler(self, request: web.Request) -> web.Response:
        uid, cid = self._ids(request)
        await self._notifications.unsubscribe(uid, cid)
        return web.json_response({"uid": uid, "cid": cid, "subscribed": False})

    # --- Hooks ---

    async def _topic_handler(self, request: web.Request) -> web.Response:
        return await self._handle_event(request, self._notifications.on_topic_post)

    async def _reply_handler(self, request: web.Request) -> web.Response:
        return await self._handle_event(request, self._notifications.on_topic_reply)

    async def _handle_event(
        self,
        request: web.Request,
        handler: Callable[[dict[str, Any]], Awaitable[Any]],
    ) -> web.Response:
        try:
            body = await request.json()
        except ValueError:
            return _error(400, "Body must be JSON")
        if not isinstance(body, dict):
            return _error(400, "Body must be a JSON object")

        try:
            mode = await handler(body)
        except ValidationError as exc:
            return _error(400, str(exc))
        except Exception as exc:
            log.error("server.event_failed", path=request.path, error=str(exc))
            return _error(503, "Delivery settings unavailable")

        return web.json_response({"mode": mode.value if mode else None}, status=202)

    async def _user_deleted_handler(self, request: web.Request) -> web.Response:
        try:
            body = await request.json()
            uid = normalize_id(body["uid"])
        except (KeyError, TypeError, ValueError):
            return _error(400, "Body must be a JSON object with a numeric uid")

        self._notifications.background.spawn(
            self._notifications.on_user_delete(uid), name=f"user-delete:{uid}"
        )
        return web.json_response({"uid": uid}, status=202)
