"""Top-level items (stories and jobs), users and feed categories.

The search index serves two record shapes: search hits carry a string
``objectID`` and a ``_tags`` list, while ``/items/<id>`` carries an integer
``id`` and a ``type`` field. Both decode into the same models.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from hnkit.errors import DecodeError

SITE_ITEM_URL = "https://news.ycombinator.com/item?id={id}"


class Category(StrEnum):
    TOP = "topstories"
    NEW = "newstories"
    BEST = "beststories"
    ASK = "askstories"
    SHOW = "showstories"
    JOB = "jobstories"


class Content(BaseModel):
    """Either an external link or a self-post body."""

    model_config = ConfigDict(frozen=True)

    url: str | None = None
    text: str | None = None


def _normalise_record(data: Any) -> Any:
    if not isinstance(data, dict):
        return data
    data = dict(data)

    if "objectID" in data:
        try:
            data["id"] = int(data["objectID"])
        except (TypeError, ValueError):
            raise ValueError(f"objectID is not numeric: {data['objectID']!r}") from None

    # Search hits carry explicit nulls for counters the index has not filled in.
    for key in ("points", "num_comments"):
        if key in data and data[key] is None:
            del data[key]

    if "content" not in data:
        item_id = data.get("id")
        if data.get("url"):
            data["content"] = Content(url=data["url"])
        elif data.get("story_text"):
            data["content"] = Content(text=data["story_text"])
        elif data.get("text"):
            data["content"] = Content(text=data["text"])
        else:
            data["content"] = Content(url=SITE_ITEM_URL.format(id=item_id))
    return data


class _ItemBase(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    title: str
    created_at: datetime = Field(alias="created_at_i")
    content: Content

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        return _normalise_record(data)

    @property
    def site_url(self) -> str:
        return SITE_ITEM_URL.format(id=self.id)

    @property
    def domain(self) -> str | None:
        if self.content.url is None:
            return None
        host = urlparse(self.content.url).hostname
        if not host:
            return None
        return host.removeprefix("www.")


class Story(_ItemBase):
    author: str
    points: int = 0
    comment_count: int = Field(default=0, alias="num_comments")


class Job(_ItemBase):
    pass


TopLevelItem = Story | Job


def decode_item(payload: Any) -> TopLevelItem:
    """Decode a search hit or an ``/items/<id>`` record into a Story or Job."""
    if not isinstance(payload, dict):
        raise DecodeError(f"Expected an object for an item, got {type(payload).__name__}")

    kind: str | None = None
    tags = payload.get("_tags")
    if isinstance(tags, list):
        if "story" in tags:
            kind = "story"
        elif "job" in tags:
            kind = "job"
    if kind is None and payload.get("type") in ("story", "job"):
        kind = payload["type"]

    try:
        if kind == "story":
            return Story.model_validate(payload)
        if kind == "job":
            return Job.model_validate(payload)
    except ValidationError as exc:
        raise DecodeError(f"Malformed {kind} record: {exc}") from exc
    raise DecodeError(f"Record is neither a story nor a job: {payload.get('type')!r}")


class User(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    created: datetime
    karma: int = 0
    about: str | None = None
    submitted: tuple[int, ...] | None = None

    @model_validator(mode="before")
    @classmethod
    def _null_karma(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("karma") is None:
            data = {**data, "karma": 0}
        return data


def decode_user(payload: Any) -> User:
    if payload is None:
        raise DecodeError("User not found")
    try:
        return User.model_validate(payload)
    except ValidationError as exc:
        raise DecodeError(f"Malformed user record: {exc}") from exc
