"""
Configuration loading and validation.

Loads service configuration from a YAML file. The forum API token is read from
the environment variable named in the config and never stored in the file.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field


class SiteConfig(BaseModel):
    title: str = "NodeBB"
    url: str = "http://localhost:4567"


class ForumConfig(BaseModel):
    url: str = "http://localhost:4567"
    api_token_env: str = "FORUM_API_TOKEN"
    verify_tls: bool = True
    request_timeout_seconds: int = 30

    @property
    def api_token(self) -> str | None:
        return os.environ.get(self.api_token_env)


class StoreConfig(BaseModel):
    backend: Literal["sqlite", "redis"] = "sqlite"
    db_path: str = "./data/subscriptions.db"
    redis_url: str = "redis://localhost:6379/0"


class SettingsConfig(BaseModel):
    path: str = "./category-notifications.settings.yaml"
    namespace: str = "category-notifications"


class EmailConfig(BaseModel):
    concurrency: int = Field(default=50, ge=1)


class TicketingConfig(BaseModel):
    endpoint: str | None = None
    request_timeout_seconds: int = 10


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8080


class LoggingConfig(BaseModel):
    level: str = "info"
    format: Literal["json", "text"] = "json"


class MetricsConfig(BaseModel):
    enabled: bool = True


class ServiceConfig(BaseModel):
    site: SiteConfig = Field(default_factory=SiteConfig)
    forum: ForumConfig = Field(default_factory=ForumConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    settings: SettingsConfig = Field(default_factory=SettingsConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    ticketing: TicketingConfig = Field(default_factory=TicketingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)


def load_config(path: str | Path) -> ServiceConfig:
    """Load and validate service configuration from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return ServiceConfig.model_validate(raw)
