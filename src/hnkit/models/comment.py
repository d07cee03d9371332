"""Comment tree models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from hnkit.errors import DecodeError
from hnkit.models.item import TopLevelItem, decode_item


class CommentColor(StrEnum):
    """Text shade the site applies to a comment; ``C00`` is the unfaded default."""

    C00 = "c00"
    C5A = "c5a"
    C73 = "c73"
    C82 = "c82"
    C88 = "c88"
    C9C = "c9c"
    CAE = "cae"
    CBE = "cbe"
    CCE = "cce"
    CDD = "cdd"


class Comment(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    created_at: datetime = Field(alias="created_at_i")
    author: str = ""
    text: str = ""
    color: CommentColor = CommentColor.C00
    children: tuple[Comment, ...] = ()
    is_deleted: bool = False

    @model_validator(mode="before")
    @classmethod
    def _mark_deleted(cls, data: Any) -> Any:
        # The search index keeps deleted comments as slots with no author or text.
        if isinstance(data, dict) and "is_deleted" not in data:
            data = dict(data)
            if data.get("author") is None or data.get("text") is None:
                data["is_deleted"] = True
                data["author"] = ""
                data["text"] = ""
            data["children"] = data.get("children") or ()
        return data

    @property
    def comment_count(self) -> int:
        return 1 + sum(child.comment_count for child in self.children)


class FlatComment(BaseModel):
    """One comment row of the rendered page, before nesting is rebuilt."""

    model_config = ConfigDict(frozen=True)

    id: int
    author: str
    text: str
    created_at: datetime
    depth: int = Field(default=0, ge=0)
    color: CommentColor = CommentColor.C00


class ContentTree(BaseModel):
    """An item as served by the search index, with its full comment tree."""

    model_config = ConfigDict(frozen=True)

    item: TopLevelItem
    title: str
    points: int = 0
    children: tuple[Comment, ...] = ()

    @property
    def comment_count(self) -> int:
        return sum(child.comment_count for child in self.children)


def decode_content_tree(payload: Any) -> ContentTree:
    if not isinstance(payload, dict):
        raise DecodeError(f"Expected an object for an item tree, got {type(payload).__name__}")
    item = decode_item(payload)
    try:
        children = tuple(Comment.model_validate(c) for c in payload.get("children") or ())
        return ContentTree(
            item=item,
            title=payload["title"],
            points=payload.get("points") or 0,
            children=children,
        )
    except (KeyError, ValidationError) as exc:
        raise DecodeError(f"Malformed item tree for {item.id}: {exc}") from exc
