"""
Service orchestrator.

Wires the store, settings, forum client, dispatchers and HTTP server together
and owns their lifecycle: startup, shutdown, signal handling.
"""

from __future__ import annotations

import asyncio
import signal

import structlog

from .backends import RedisSortedSetStore, SQLiteSortedSetStore
from .config import ServiceConfig
from .forum import ForumClient
from .handlers import CategoryNotifications
from .mailer import EmailDispatcher
from .metrics import MetricsCollector
from .notifier import NotificationDispatcher
from .server import ApiServer
from .settings import YamlSettings
from .subscriptions import StoreCategoryDirectory, SubscriptionManager
from .tasks import BackgroundTasks
from .ticketing import TicketNotifier

log = structlog.get_logger()

SHUTDOWN_TIMEOUT = 15.0


def build_store(config: ServiceConfig) -> SQLiteSortedSetStore | RedisSortedSetStore:
    if config.store.backend == "redis":
        return RedisSortedSetStore(config.store.redis_url)
    return SQLiteSortedSetStore(config.store.db_path)


class NotificationsApp:
    """
    Main service process: owns connections, background dispatches and the API.
    """

    def __init__(self, config: ServiceConfig):
        self._config = config
        self._metrics = MetricsCollector()
        self._background = BackgroundTasks(metrics=self._metrics)
        self._store = build_store(config)
        self._forum = ForumClient(
            base_url=config.forum.url,
            api_token=config.forum.api_token,
            verify_tls=config.forum.verify_tls,
            request_timeout=config.forum.request_timeout_seconds,
        )
        self._tickets = TicketNotifier(
            config.ticketing.endpoint,
            request_timeout=config.ticketing.request_timeout_seconds,
            metrics=self._metrics,
        )

        subscriptions = SubscriptionManager(self._store, metrics=self._metrics)
        self._notifications = CategoryNotifications(
            subscriptions=subscriptions,
            settings=YamlSettings(config.settings.path),
            notifier=NotificationDispatcher(subscriptions, self._forum, metrics=self._metrics),
            mailer=EmailDispatcher(
                subscriptions,
                self._forum,
                site_title=config.site.title,
                site_url=config.site.url,
                concurrency=config.email.concurrency,
                tickets=self._tickets,
                background=self._background,
                metrics=self._metrics,
            ),
            categories=StoreCategoryDirectory(self._store),
            background=self._background,
            namespace=config.settings.namespace,
            metrics=self._metrics,
        )
        self._server = ApiServer(
            self._notifications,
            host=config.server.host,
            port=config.server.port,
            metrics=self._metrics if config.metrics.enabled else MetricsCollector(),
            store_probe=self._store.ping,
            forum_probe=self._forum.check_health,
        )
        self._running = False
        self._shutdown_event = asyncio.Event()

    @property
    def notifications(self) -> CategoryNotifications:
        return self._notifications

    async def start(self) -> None:
        log.info("app.starting", store=self._config.store.backend)

        await self._store.open()
        await self._forum.open()
        await self._tickets.open()
        await self._server.start()

        self._running = True
        log.info(
            "app.started",
            host=self._config.server.host,
            port=self._config.server.port,
            ticketing=self._tickets.enabled,
        )

    async def stop(self) -> None:
        """Graceful shutdown: stop accepting events, finish dispatches, close connections."""
        if not self._running:
            return
        self._running = False
        log.info("app.stopping", pending=len(self._background))

        await self._server.stop()
        await self._background.drain()

        await self._tickets.close()
        await self._forum.close()
        await self._store.close()

        log.info("app.stopped")

    async def run_forever(self) -> None:
        """Run until shutdown signal."""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._shutdown_event.set)

        await self.start()
        try:
            await self._shutdown_event.wait()
        finally:
            await asyncio.wait_for(self.stop(), timeout=SHUTDOWN_TIMEOUT)
