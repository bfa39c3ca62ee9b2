"""
In-app notification dispatch for new topics and replies.
"""

from __future__ import annotations

from typing import Any

import structlog

from .metrics import MetricsCollector
from .models import NotificationEvent, TopicEvent
from .ports import NotificationService
from .subscriptions import SubscriptionManager

log = structlog.get_logger()


def build_notification(event: NotificationEvent) -> dict[str, Any]:
    """Notification payload for an event.

    `nid` is derived from the topic, post and author so the notification
    service collapses repeated deliveries of the same post into one entry.
    """
    if isinstance(event, TopicEvent):
        body_short = (
            f"[[notifications:user_posted_topic, {event.author_display_name}, {event.topic_title}]]"
        )
    else:
        body_short = (
            f"[[notifications:user_posted_to, {event.author_display_name}, {event.topic_title}]]"
        )
    return {
        "bodyShort": body_short,
        "bodyLong": event.content,
        "pid": event.post_id,
        "path": f"/post/{event.post_id}",
        "nid": event.notification_id,
        "tid": event.topic_id,
        "from": event.author_id,
    }


class NotificationDispatcher:
    def __init__(
        self,
        subscriptions: SubscriptionManager,
        service: NotificationService,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._subscriptions = subscriptions
        self._service = service
        self._metrics = metrics

    async def dispatch(self, event: NotificationEvent) -> None:
        try:
            uids = await self._subscriptions.resolve_audience(event.category_id, event.author_id)
        except Exception as exc:
            log.warning(
                "notifier.audience_failed",
                cid=event.category_id,
                tid=event.topic_id,
                error=str(exc),
            )
            self._skipped()
            return

        if not uids:
            self._skipped()
            return

        payload = build_notification(event)
        try:
            notification = await self._service.create(payload)
        except Exception as exc:
            log.warning("notifier.create_failed", nid=payload["nid"], error=str(exc))
            notification = None

        if not notification:
            if self._metrics:
                self._metrics.inc("notifications_abandoned_total")
            return

        await self._service.push(notification, uids)
        if self._metrics:
            self._metrics.inc("notifications_pushed_total")
        log.info("notifier.pushed", nid=payload["nid"], recipients=len(uids))

    def _skipped(self) -> None:
        if self._metrics:
            self._metrics.inc("dispatch_skipped_total")
