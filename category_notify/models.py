"""
Domain events and value types.

Forum identities arrive as either integers or numeric strings depending on the
caller. Every model normalizes them to `int` on construction so that comparisons
downstream never mix the two.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, field_validator


class DeliveryMode(str, Enum):
    NOTIFICATION = "notification"
    EMAIL = "email"
    BOTH = "both"


def normalize_id(value: Any) -> int:
    """Coerce a user or category identity to its canonical integer form.

    Accepts ints and numeric strings (surrounding whitespace is ignored).
    Raises ValueError for anything else, including booleans and floats with a
    fractional part.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid identity: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return int(text)
    raise ValueError(f"Invalid identity: {value!r}")


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    category_id: int
    author_id: int
    topic_id: int
    topic_title: str
    topic_slug: str
    author_display_name: str
    author_slug: str = ""
    author_avatar: str = ""

    @field_validator("category_id", "author_id", "topic_id", mode="before")
    @classmethod
    def normalize_ids(cls, value: Any) -> int:
        return normalize_id(value)


class TopicEvent(_Event):
    """A new topic was created in a category."""

    main_post_id: int
    main_post_content: str
    category_name: str
    category_slug: str

    @field_validator("main_post_id", mode="before")
    @classmethod
    def normalize_pid(cls, value: Any) -> int:
        return normalize_id(value)

    @property
    def post_id(self) -> int:
        return self.main_post_id

    @property
    def content(self) -> str:
        return self.main_post_content

    @property
    def notification_id(self) -> str:
        return f"tid:{self.topic_id}:uid:{self.author_id}"


class ReplyEvent(_Event):
    """A reply was posted to a topic in a category."""

    post_id: int
    post_content: str

    @field_validator("post_id", mode="before")
    @classmethod
    def normalize_pid(cls, value: Any) -> int:
        return normalize_id(value)

    @property
    def content(self) -> str:
        return self.post_content

    @property
    def notification_id(self) -> str:
        return f"tid:{self.topic_id}:pid:{self.post_id}:uid:{self.author_id}"


NotificationEvent = Union[TopicEvent, ReplyEvent]
