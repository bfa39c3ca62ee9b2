"""
Subscription management for forum categories.

Tracks which users are subscribed to which category and resolves the audience
for a dispatch. Each category has one sorted set of subscriber uids, scored by
subscription time.
"""

from __future__ import annotations

import time
from typing import Any

import structlog

from .metrics import MetricsCollector
from .models import normalize_id
from .ports import CategoryDirectory, SortedSetStore

log = structlog.get_logger()

CATEGORIES_KEY = "categories:cid"


def subscribers_key(cid: int) -> str:
    return f"cid:{cid}:subscribed:uids"


class SubscriptionManager:
    """Manages category subscriptions on top of a sorted-set store."""

    def __init__(self, store: SortedSetStore, metrics: MetricsCollector | None = None) -> None:
        self._store = store
        self._metrics = metrics

    async def is_subscribed(self, uid: Any, cid: Any) -> bool:
        uid, cid = normalize_id(uid), normalize_id(cid)
        return await self._store.is_member(subscribers_key(cid), str(uid))

    async def subscribe(self, uid: Any, cid: Any) -> None:
        uid, cid = normalize_id(uid), normalize_id(cid)
        await self._store.add(subscribers_key(cid), time.time() * 1000, str(uid))
        if self._metrics:
            self._metrics.inc("subscriptions_added_total")
        log.info("subscriptions.added", uid=uid, cid=cid)

    async def unsubscribe(self, uid: Any, cid: Any) -> None:
        uid, cid = normalize_id(uid), normalize_id(cid)
        await self._store.remove(subscribers_key(cid), str(uid))
        if self._metrics:
            self._metrics.inc("subscriptions_removed_total")
        log.info("subscriptions.removed", uid=uid, cid=cid)

    async def list_subscribers(self, cid: Any) -> list[int]:
        members = await self._store.range_all(subscribers_key(normalize_id(cid)))
        return [normalize_id(m) for m in members]

    async def resolve_audience(self, cid: Any, excluded_uid: Any) -> list[int]:
        """Subscribers of `cid` in subscription order, minus `excluded_uid`.

        Both sides are normalized before comparing, so an author id given as
        "2" still excludes subscriber 2.
        """
        excluded = normalize_id(excluded_uid)
        return [uid for uid in await self.list_subscribers(cid) if uid != excluded]


class StoreCategoryDirectory(CategoryDirectory):
    """Lists categories from the forum's `categories:cid` sorted set."""

    def __init__(self, store: SortedSetStore, key: str = CATEGORIES_KEY) -> None:
        self._store = store
        self._key = key

    async def list_all_category_ids(self) -> list[int]:
        return [normalize_id(cid) for cid in await self._store.range_all(self._key)]
