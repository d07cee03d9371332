from __future__ import annotations

from hnkit.models.auth import AuthToken
from hnkit.models.comment import (
    Comment,
    CommentColor,
    ContentTree,
    FlatComment,
    decode_content_tree,
)
from hnkit.models.item import (
    Category,
    Content,
    Job,
    Story,
    TopLevelItem,
    User,
    decode_item,
    decode_user,
)
from hnkit.models.page import Action, ActionKind, ActionSet, Page, inverse_set

__all__ = [
    # auth
    "AuthToken",
    # items
    "Category",
    "Content",
    "Story",
    "Job",
    "TopLevelItem",
    "User",
    "decode_item",
    "decode_user",
    # comments
    "Comment",
    "CommentColor",
    "ContentTree",
    "FlatComment",
    "decode_content_tree",
    # pages
    "Action",
    "ActionKind",
    "ActionSet",
    "Page",
    "inverse_set",
]
