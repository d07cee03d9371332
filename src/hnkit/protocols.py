"""Protocol interfaces for swappable components.

HNClient references these protocols, not the concrete implementations. This
allows:
- Tests to use lightweight in-memory sources
- Alternative backends (e.g. a mirror of the search index) without changing
  the page assembly code
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

    from hnkit.models import AuthToken, Category, ContentTree, TopLevelItem, User


class ContentSource(Protocol):
    """Structured item data: records, comment trees, feeds, users."""

    async def fetch_tree(self, item_id: int) -> ContentTree: ...

    async def fetch_single(self, item_id: int) -> TopLevelItem: ...

    async def fetch_many(self, ids: Sequence[int]) -> list[TopLevelItem]: ...

    async def search(self, query: str) -> list[TopLevelItem]: ...

    async def fetch_ids_for_category(self, category: Category) -> list[int]: ...

    async def fetch_user(self, username: str) -> User: ...


class MarkupSource(Protocol):
    """The server-rendered site and its session-bound operations."""

    base_url: str

    async def fetch_rendered_page(self, item_id: int, token: AuthToken | None = None) -> str: ...

    async def perform(self, url: str, token: AuthToken) -> None: ...

    async def login(self, username: str, password: str) -> AuthToken: ...

    async def fetch_reply_form(self, item_id: int, token: AuthToken) -> str: ...

    async def submit_reply(
        self, item_id: int, hmac: str, text: str, token: AuthToken
    ) -> None: ...
