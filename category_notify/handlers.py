"""
Entry points called by the host forum.

Subscription calls are awaited and propagate store errors. Post events resolve
the delivery mode, start the matching dispatchers in the background and return
straight away, so creating a topic or reply never waits on fan-out.
"""

from __future__ import annotations

from typing import Any

import structlog

from .mailer import EmailDispatcher
from .metrics import MetricsCollector
from .models import DeliveryMode, NotificationEvent, ReplyEvent, TopicEvent, normalize_id
from .notifier import NotificationDispatcher
from .ports import CategoryDirectory, SettingsService
from .settings import DEFAULT_NAMESPACE, resolve_mode
from .subscriptions import SubscriptionManager
from .tasks import BackgroundTasks

log = structlog.get_logger()


class CategoryNotifications:
    """
    Public surface of the service.

    - is_subscribed / subscribe / unsubscribe
    - on_user_delete: drop a deleted user from every category
    - on_topic_post / on_topic_reply: fan out to category subscribers
    """

    def __init__(
        self,
        subscriptions: SubscriptionManager,
        settings: SettingsService,
        notifier: NotificationDispatcher,
        mailer: EmailDispatcher,
        categories: CategoryDirectory,
        background: BackgroundTasks | None = None,
        namespace: str = DEFAULT_NAMESPACE,
        metrics: MetricsCollector | None = None,
    ):
        self._subscriptions = subscriptions
        self._settings = settings
        self._notifier = notifier
        self._mailer = mailer
        self._categories = categories
        self._background = background if background is not None else BackgroundTasks()
        self._namespace = namespace
        self._metrics = metrics

    @property
    def background(self) -> BackgroundTasks:
        return self._background

    # --- Subscriptions ---

    async def is_subscribed(self, uid: Any, cid: Any) -> bool:
        return await self._subscriptions.is_subscribed(uid, cid)

    async def subscribe(self, uid: Any, cid: Any) -> None:
        await self._subscriptions.subscribe(uid, cid)

    async def unsubscribe(self, uid: Any, cid: Any) -> None:
        await self._subscriptions.unsubscribe(uid, cid)

    async def on_user_delete(self, uid: Any) -> list[int]:
        """Unsubscribe `uid` from every category.

        Best effort: a category that fails is logged and skipped. Returns the
        ids of the categories that could not be cleared.
        """
        uid = normalize_id(uid)
        try:
            cids = await self._categories.list_all_category_ids()
        except Exception as exc:
            log.error("handlers.user_delete_listing_failed", uid=uid, error=str(exc))
            return []

        failed: list[int] = []
        for cid in cids:
            try:
                await self._subscriptions.unsubscribe(uid, cid)
            except Exception as exc:
                log.error("handlers.user_delete_failed", uid=uid, cid=cid, error=str(exc))
                failed.append(cid)

        log.info("handlers.user_deleted", uid=uid, categories=len(cids), failed=len(failed))
        return failed

    # --- Post events ---

    async def on_topic_post(self, event: TopicEvent | dict[str, Any]) -> DeliveryMode | None:
        if not isinstance(event, TopicEvent):
            event = TopicEvent.model_validate(event)
        return await self._handle(event, "topic")

    async def on_topic_reply(self, event: ReplyEvent | dict[str, Any]) -> DeliveryMode | None:
        if not isinstance(event, ReplyEvent):
            event = ReplyEvent.model_validate(event)
        return await self._handle(event, "reply")

    async def _handle(self, event: NotificationEvent, kind: str) -> DeliveryMode | None:
        if self._metrics:
            self._metrics.inc("events_received_total")

        # Settings failures abort the event before anything is dispatched.
        mode = await resolve_mode(self._settings, self._namespace)

        ref = f"{kind}:tid:{event.topic_id}:pid:{event.post_id}"
        if mode in (DeliveryMode.EMAIL, DeliveryMode.BOTH):
            self._background.spawn(self._mailer.dispatch(event), name=f"email:{ref}")
        if mode in (DeliveryMode.NOTIFICATION, DeliveryMode.BOTH):
            self._background.spawn(self._notifier.dispatch(event), name=f"notification:{ref}")

        log.info(
            "handlers.event_dispatched",
            kind=kind,
            cid=event.category_id,
            tid=event.topic_id,
            mode=mode.value if mode else None,
        )
        return mode
