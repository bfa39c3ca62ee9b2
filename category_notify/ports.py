"""
Interfaces for the services this package talks to.

Concrete implementations live in `backends` (sorted-set stores), `settings`
(delivery settings), `forum` (notification and email delivery) and
`subscriptions` (category listing).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class SortedSetStore(ABC):
    """Key-value store of score-ordered member sets."""

    @abstractmethod
    async def is_member(self, key: str, member: str) -> bool:
        ...

    @abstractmethod
    async def add(self, key: str, score: float, member: str) -> None:
        """Add `member` to the set, or refresh its score if already present."""
        ...

    @abstractmethod
    async def remove(self, key: str, member: str) -> None:
        """Remove `member`. Removing a non-member is not an error."""
        ...

    @abstractmethod
    async def range_all(self, key: str) -> list[str]:
        """Return every member ordered by ascending score."""
        ...


class SettingsService(ABC):
    @abstractmethod
    async def get(self, namespace: str) -> dict[str, Any]:
        """Return the settings stored under `namespace` (empty if unset)."""
        ...


class NotificationService(ABC):
    """In-app notification delivery."""

    @abstractmethod
    async def create(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        """Materialize a notification. Returns None if nothing was created."""
        ...

    @abstractmethod
    async def push(self, notification: dict[str, Any], uids: list[int]) -> None:
        ...


class EmailService(ABC):
    @abstractmethod
    async def send(self, template: str, uid: int, params: dict[str, Any]) -> None:
        """Render `template` with `params` and mail it to user `uid`."""
        ...


class CategoryDirectory(ABC):
    @abstractmethod
    async def list_all_category_ids(self) -> list[int]:
        ...
