"""
Email dispatch for new topics and replies.

One payload is rendered per event and mailed to every subscriber with at most
`concurrency` sends in flight. A failed send is recorded against its recipient
and never stops the others.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import structlog

from .metrics import MetricsCollector
from .models import NotificationEvent, TopicEvent
from .ports import EmailService
from .subscriptions import SubscriptionManager
from .tasks import BackgroundTasks
from .ticketing import TicketNotifier

log = structlog.get_logger()

DEFAULT_CONCURRENCY = 50
TOPIC_TEMPLATE = "categoryNotifications_topic"
REPLY_TEMPLATE = "categoryNotifications_post"


@dataclass
class EmailReport:
    """Outcome of one email fan-out."""

    template: str
    recipients: list[int]
    failures: dict[int, BaseException] = field(default_factory=dict)

    @property
    def sent(self) -> int:
        return len(self.recipients) - len(self.failures)

    @property
    def error(self) -> BaseException | None:
        """First failure in recipient order, if any."""
        for uid in self.recipients:
            if uid in self.failures:
                return self.failures[uid]
        return None


def build_email(
    event: NotificationEvent, site_title: str, site_url: str
) -> tuple[str, dict[str, Any]]:
    """Template name and params shared by every recipient of `event`."""
    params: dict[str, Any] = {
        "site_title": site_title or "NodeBB",
        "url": site_url,
        "title": event.topic_title,
        "topicSlug": event.topic_slug,
        "content": event.content,
        "user": {
            "slug": event.author_slug,
            "name": event.author_display_name,
            "picture": event.author_avatar,
        },
    }
    if isinstance(event, TopicEvent):
        params["subject"] = f"[[categorynotifications:new-topic-in, {event.category_name}]]"
        params["category"] = {"name": event.category_name, "slug": event.category_slug}
        return TOPIC_TEMPLATE, params

    params["subject"] = f"[[categorynotifications:new-reply-in, {event.topic_title}]]"
    params["pid"] = event.post_id
    return REPLY_TEMPLATE, params


class EmailDispatcher:
    def __init__(
        self,
        subscriptions: SubscriptionManager,
        service: EmailService,
        site_title: str = "NodeBB",
        site_url: str = "",
        concurrency: int = DEFAULT_CONCURRENCY,
        tickets: TicketNotifier | None = None,
        background: BackgroundTasks | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._subscriptions = subscriptions
        self._service = service
        self._site_title = site_title
        self._site_url = site_url
        self._concurrency = concurrency
        self._tickets = tickets
        self._background = background
        self._metrics = metrics

    async def dispatch(self, event: NotificationEvent) -> EmailReport | None:
        try:
            uids = await self._subscriptions.resolve_audience(event.category_id, event.author_id)
        except Exception as exc:
            log.warning(
                "mailer.audience_failed",
                cid=event.category_id,
                tid=event.topic_id,
                error=str(exc),
            )
            self._inc("dispatch_skipped_total")
            return None

        if not uids:
            self._inc("dispatch_skipped_total")
            return None

        template, params = build_email(event, self._site_title, self._site_url)
        report = await self.send_all(template, uids, params)

        if isinstance(event, TopicEvent) and self._tickets and self._tickets.enabled:
            notify = self._tickets.notify(
                event.author_display_name, event.topic_title, event.category_name
            )
            if self._background is not None:
                self._background.spawn(notify, name=f"ticketing:tid:{event.topic_id}")
            else:
                await notify

        return report

    async def send_all(
        self, template: str, uids: list[int], params: dict[str, Any]
    ) -> EmailReport:
        """Send `template` to every uid, at most `concurrency` at a time."""
        semaphore = asyncio.Semaphore(self._concurrency)
        report = EmailReport(template=template, recipients=list(uids))

        async def send_one(uid: int) -> None:
            async with semaphore:
                try:
                    await self._service.send(template, uid, params)
                    self._inc("emails_sent_total")
                except Exception as exc:
                    report.failures[uid] = exc
                    self._inc("emails_failed_total")
                    log.warning("mailer.send_failed", uid=uid, template=template, error=str(exc))

        await asyncio.gather(*(send_one(uid) for uid in uids))

        log_method = log.error if report.failures else log.info
        log_method(
            "mailer.completed",
            template=template,
            recipients=len(report.recipients),
            failed=len(report.failures),
            error=str(report.error) if report.error else None,
        )
        return report

    def _inc(self, name: str) -> None:
        if self._metrics:
            self._metrics.inc(name)
