"""
Sorted-set store backends.

- SQLiteSortedSetStore: single-node deployments, one table keyed on (key, member)
- RedisSortedSetStore: shared deployments, native ZSET commands

Both keep members as strings; callers normalize identities on the way out.
"""

from __future__ import annotations

import os

import aiosqlite
import redis.asyncio as redis

from .ports import SortedSetStore

_SCHEMA = """
CREATE TABLE IF NOT EXISTS sorted_sets (
    key     TEXT NOT NULL,
    member  TEXT NOT NULL,
    score   REAL NOT NULL,
    PRIMARY KEY (key, member)
);

CREATE INDEX IF NOT EXISTS idx_sorted_sets_score
    ON sorted_sets(key, score);
"""


class SQLiteSortedSetStore(SortedSetStore):
    """Async SQLite sorted-set store."""

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def open(self) -> None:
        if self._db_path != ":memory:":
            os.makedirs(os.path.dirname(self._db_path) or ".", exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(_SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    async def ping(self) -> bool:
        if not self._db:
            return False
        try:
            await self._db.execute("SELECT 1")
            return True
        except Exception:
            return False

    async def is_member(self, key: str, member: str) -> bool:
        assert self._db
        cursor = await self._db.execute(
            "SELECT 1 FROM sorted_sets WHERE key = ? AND member = ?",
            (key, str(member)),
        )
        return await cursor.fetchone() is not None

    async def add(self, key: str, score: float, member: str) -> None:
        assert self._db
        await self._db.execute(
            """INSERT INTO sorted_sets (key, member, score) VALUES (?, ?, ?)
               ON CONFLICT(key, member) DO UPDATE SET score = excluded.score""",
            (key, str(member), score),
        )
        await self._db.commit()

    async def remove(self, key: str, member: str) -> None:
        assert self._db
        await self._db.execute(
            "DELETE FROM sorted_sets WHERE key = ? AND member = ?", (key, str(member))
        )
        await self._db.commit()

    async def range_all(self, key: str) -> list[str]:
        assert self._db
        cursor = await self._db.execute(
            "SELECT member FROM sorted_sets WHERE key = ? ORDER BY score, member",
            (key,),
        )
        rows = await cursor.fetchall()
        return [r["member"] for r in rows]


class RedisSortedSetStore(SortedSetStore):
    """Redis ZSET-backed store."""

    def __init__(self, url: str, client: redis.Redis | None = None):
        self._url = url
        self._client = client

    async def open(self) -> None:
        if self._client is None:
            self._client = redis.from_url(self._url, decode_responses=True)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(await self._client.ping())
        except Exception:
            return False

    async def is_member(self, key: str, member: str) -> bool:
        assert self._client is not None
        return await self._client.zscore(key, str(member)) is not None

    async def add(self, key: str, score: float, member: str) -> None:
        assert self._client is not None
        await self._client.zadd(key, {str(member): score})

    async def remove(self, key: str, member: str) -> None:
        assert self._client is not None
        await self._client.zrem(key, str(member))

    async def range_all(self, key: str) -> list[str]:
        assert self._client is not None
        return list(await self._client.zrange(key, 0, -1))
