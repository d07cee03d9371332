"""Shared test fixtures for the hnkit test suite."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

import pytest

from hn_pages import EPOCH
from hnkit.models import Comment, CommentColor, FlatComment


@dataclass
class FakeClock:
    """Monotonic clock the tests advance by hand."""

    now: float = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


def make_comment(comment_id: int, *children: Comment, deleted: bool = False) -> Comment:
    return Comment(
        id=comment_id,
        created_at=datetime.fromtimestamp(EPOCH, tz=UTC),
        author="" if deleted else f"user{comment_id}",
        text="" if deleted else f"text {comment_id}",
        children=children,
        is_deleted=deleted,
    )


def make_flat(comment_id: int, depth: int, color: CommentColor = CommentColor.C00) -> FlatComment:
    return FlatComment(
        id=comment_id,
        author=f"user{comment_id}",
        text=f"text {comment_id}",
        created_at=datetime.fromtimestamp(EPOCH, tz=UTC),
        depth=depth,
        color=color,
    )


@pytest.fixture()
def comment():
    """Factory: ``comment(id, *children, deleted=False)``."""
    return make_comment


@pytest.fixture()
def flat():
    """Factory: ``flat(id, depth, color=CommentColor.C00)``."""
    return make_flat
