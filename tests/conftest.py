"""
Shared fixtures: a real SQLite store on tmp_path plus in-memory forum services.
"""

import pytest

from category_notify.backends import SQLiteSortedSetStore
from category_notify.handlers import CategoryNotifications
from category_notify.mailer import EmailDispatcher
from category_notify.metrics import MetricsCollector
from category_notify.notifier import NotificationDispatcher
from category_notify.settings import StaticSettings
from category_notify.subscriptions import SubscriptionManager
from category_notify.tasks import BackgroundTasks

from .fakes import NAMESPACE, FakeEmailService, FakeNotificationService, FixedCategories


@pytest.fixture
async def store(tmp_path):
    s = SQLiteSortedSetStore(str(tmp_path / "subscriptions.db"))
    await s.open()
    yield s
    await s.close()


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def subscriptions(store, metrics):
    return SubscriptionManager(store, metrics=metrics)


@pytest.fixture
def settings():
    return StaticSettings({NAMESPACE: {"type": "both"}})


@pytest.fixture
def notification_service():
    return FakeNotificationService()


@pytest.fixture
def email_service():
    return FakeEmailService()


@pytest.fixture
def background(metrics):
    return BackgroundTasks(metrics=metrics)


@pytest.fixture
def notifications(subscriptions, settings, notification_service, email_service, background, metrics):
    return CategoryNotifications(
        subscriptions=subscriptions,
        settings=settings,
        notifier=NotificationDispatcher(subscriptions, notification_service, metrics=metrics),
        mailer=EmailDispatcher(
            subscriptions,
            email_service,
            site_title="Test Forum",
            site_url="https://forum.test",
            background=background,
            metrics=metrics,
        ),
        categories=FixedCategories([10, 20, 30]),
        background=background,
        namespace=NAMESPACE,
        metrics=metrics,
    )
