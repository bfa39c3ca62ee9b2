"""
Live delivery settings and delivery mode resolution.

The delivery mode is re-read on every event so an operator can switch between
in-app notifications and email without restarting the service.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import structlog
import yaml

from .models import DeliveryMode
from .ports import SettingsService

log = structlog.get_logger()

DEFAULT_NAMESPACE = "category-notifications"


class SettingsError(Exception):
    """The settings backend could not be read."""


class StaticSettings(SettingsService):
    """Fixed in-memory settings, keyed by namespace."""

    def __init__(self, values: dict[str, dict[str, Any]] | None = None) -> None:
        self._values = values or {}

    def set(self, namespace: str, settings: dict[str, Any]) -> None:
        self._values[namespace] = settings

    async def get(self, namespace: str) -> dict[str, Any]:
        return dict(self._values.get(namespace) or {})


class YamlSettings(SettingsService):
    """
    Settings read from a YAML file of `namespace: {key: value}` mappings.

    A missing file counts as "nothing configured". A file that cannot be read
    or parsed raises SettingsError.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    async def get(self, namespace: str) -> dict[str, Any]:
        raw = await asyncio.to_thread(self._load)
        section = raw.get(namespace) or {}
        if not isinstance(section, dict):
            raise SettingsError(f"Settings namespace {namespace!r} must be a mapping")
        return section

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path) as f:
                raw = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise SettingsError(f"Cannot read settings from {self._path}: {exc}") from exc

        if not isinstance(raw, dict):
            raise SettingsError(f"Settings file {self._path} must contain a mapping")
        return raw


async def resolve_mode(
    settings: SettingsService, namespace: str = DEFAULT_NAMESPACE
) -> DeliveryMode | None:
    """Resolve the delivery mode for one event.

    An unset or empty `type` means email. An unrecognized value returns None and
    no channel fires; this mirrors the forum plugin, which had no fallback
    branch for unknown modes.
    """
    values = await settings.get(namespace)
    raw = values.get("type") or DeliveryMode.EMAIL.value
    try:
        return DeliveryMode(raw)
    except ValueError:
        log.warning("settings.unrecognized_mode", namespace=namespace, mode=raw)
        return None
