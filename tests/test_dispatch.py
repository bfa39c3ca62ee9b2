"""Tests for notification and email dispatchers."""

import httpx

from category_notify.mailer import EmailDispatcher, build_email
from category_notify.notifier import NotificationDispatcher, build_notification
from category_notify.subscriptions import SubscriptionManager, subscribers_key
from category_notify.tasks import BackgroundTasks
from category_notify.ticketing import TicketNotifier

from .fakes import FakeEmailService, FakeNotificationService, FlakyStore, make_reply, make_topic


async def subscribe_all(subscriptions: SubscriptionManager, cid: int, uids):
    for uid in uids:
        await subscriptions.subscribe(uid, cid)


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


def test_topic_notification_payload():
    payload = build_notification(make_topic())
    assert payload == {
        "bodyShort": "[[notifications:user_posted_topic, alice, Printer on fire]]",
        "bodyLong": "It is on fire.",
        "pid": 420,
        "path": "/post/420",
        "nid": "tid:42:uid:1",
        "tid": 42,
        "from": 1,
    }


def test_reply_notification_payload():
    payload = build_notification(make_reply())
    assert payload["bodyShort"] == "[[notifications:user_posted_to, bob, Printer on fire]]"
    assert payload["nid"] == "tid:42:pid:421:uid:2"
    assert payload["path"] == "/post/421"
    assert payload["from"] == 2


def test_notification_id_is_stable_across_id_types():
    assert build_notification(make_reply(author_id="2", post_id="421"))["nid"] == (
        build_notification(make_reply())["nid"]
    )


def test_topic_email_payload():
    template, params = build_email(make_topic(), "Test Forum", "https://forum.test")
    assert template == "categoryNotifications_topic"
    assert params["subject"] == "[[categorynotifications:new-topic-in, Support]]"
    assert params["category"] == {"name": "Support", "slug": "5/support"}
    assert params["site_title"] == "Test Forum"
    assert params["url"] == "https://forum.test"
    assert params["user"] == {"slug": "alice", "name": "alice", "picture": "/uploads/alice.png"}
    assert "pid" not in params


def test_reply_email_payload():
    template, params = build_email(make_reply(), "", "https://forum.test")
    assert template == "categoryNotifications_post"
    assert params["subject"] == "[[categorynotifications:new-reply-in, Printer on fire]]"
    assert params["site_title"] == "NodeBB"
    assert params["pid"] == 421
    assert params["content"] == "Have you tried turning it off?"
    assert "category" not in params


# ---------------------------------------------------------------------------
# Notification dispatcher
# ---------------------------------------------------------------------------


async def test_notification_pushed_to_audience(subscriptions, metrics):
    service = FakeNotificationService()
    await subscribe_all(subscriptions, 5, [1, 3, 4])

    await NotificationDispatcher(subscriptions, service, metrics).dispatch(make_topic())

    assert len(service.created) == 1
    notification, uids = service.pushed[0]
    assert notification["nid"] == "tid:42:uid:1"
    assert uids == [3, 4]
    assert metrics.get("notifications_pushed_total") == 1


async def test_notification_empty_audience_builds_nothing(subscriptions, metrics):
    service = FakeNotificationService()
    await subscriptions.subscribe(1, 5)  # only the author

    await NotificationDispatcher(subscriptions, service, metrics).dispatch(make_topic())

    assert service.created == []
    assert service.pushed == []
    assert metrics.get("dispatch_skipped_total") == 1


async def test_notification_create_failure_abandons(subscriptions, metrics):
    service = FakeNotificationService()
    service.fail_create = True
    await subscribe_all(subscriptions, 5, [3])

    await NotificationDispatcher(subscriptions, service, metrics).dispatch(make_topic())

    assert service.pushed == []
    assert metrics.get("notifications_abandoned_total") == 1


async def test_notification_create_returns_nothing(subscriptions):
    service = FakeNotificationService()
    service.create_returns_nothing = True
    await subscribe_all(subscriptions, 5, [3])

    await NotificationDispatcher(subscriptions, service).dispatch(make_topic())

    assert len(service.created) == 1
    assert service.pushed == []


async def test_notification_audience_failure_skips(store):
    subscriptions = SubscriptionManager(FlakyStore(store, {subscribers_key(5)}))
    service = FakeNotificationService()

    await NotificationDispatcher(subscriptions, service).dispatch(make_topic())

    assert service.created == []


# ---------------------------------------------------------------------------
# Email dispatcher
# ---------------------------------------------------------------------------


async def test_email_sent_to_each_subscriber(subscriptions, metrics):
    service = FakeEmailService()
    await subscribe_all(subscriptions, 5, [1, 2, 3])

    report = await EmailDispatcher(subscriptions, service, metrics=metrics).dispatch(make_reply())

    assert service.recipients == [1, 3]
    assert report.recipients == [1, 3]
    assert report.sent == 2
    assert report.error is None
    assert all(template == "categoryNotifications_post" for template, _, _ in service.sent)
    assert metrics.get("emails_sent_total") == 2


async def test_email_empty_audience_sends_nothing(subscriptions):
    service = FakeEmailService()
    await subscriptions.subscribe(2, 5)

    report = await EmailDispatcher(subscriptions, service).dispatch(make_reply())

    assert report is None
    assert service.attempted == []


async def test_email_partial_failure_attempts_everyone(subscriptions, metrics):
    service = FakeEmailService(delay=0.01)
    service.failing_uids = {13}
    await subscribe_all(subscriptions, 5, [11, 12, 13, 14, 15])

    report = await EmailDispatcher(subscriptions, service, metrics=metrics).dispatch(make_topic())

    assert sorted(service.attempted) == [11, 12, 13, 14, 15]
    assert service.recipients == [11, 12, 14, 15]
    assert list(report.failures) == [13]
    assert isinstance(report.error, RuntimeError)
    assert report.sent == 4
    assert metrics.get("emails_failed_total") == 1


async def test_email_concurrency_is_bounded(subscriptions):
    service = FakeEmailService(delay=0.01)
    await subscribe_all(subscriptions, 5, range(100, 130))

    report = await EmailDispatcher(subscriptions, service, concurrency=4).dispatch(make_topic())

    assert report.sent == 30
    assert service.max_in_flight == 4


async def test_email_audience_failure_skips(store):
    subscriptions = SubscriptionManager(FlakyStore(store, {subscribers_key(5)}))
    service = FakeEmailService()

    assert await EmailDispatcher(subscriptions, service).dispatch(make_topic()) is None
    assert service.attempted == []


async def test_topic_email_notifies_ticketing(subscriptions):
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, text="ticket created")

    tickets = TicketNotifier("http://tickets.test/RMT/email/ticket", transport=httpx.MockTransport(handler))
    background = BackgroundTasks()
    await subscribe_all(subscriptions, 5, [3])

    dispatcher = EmailDispatcher(
        subscriptions, FakeEmailService(), tickets=tickets, background=background
    )
    await dispatcher.dispatch(make_topic())
    await dispatcher.dispatch(make_reply())
    await background.drain()
    await tickets.close()

    assert len(requests) == 1
    params = requests[0].url.params
    assert params["username"] == "alice"
    assert params["ticketName"] == "Printer on fire"
    assert params["categoryName"] == "Support"


async def test_bad_ticketing_endpoint_keeps_email_report(subscriptions, metrics):
    tickets = TicketNotifier("http://exa mple.com:notaport/x", metrics=metrics)
    await subscribe_all(subscriptions, 5, [3, 4])

    dispatcher = EmailDispatcher(subscriptions, FakeEmailService(), tickets=tickets)
    report = await dispatcher.dispatch(make_topic())
    await tickets.close()

    assert report is not None
    assert report.recipients == [3, 4]
    assert metrics.get("ticketing_errors_total") == 1
