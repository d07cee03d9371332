"""Backend adapters: the search index, the realtime feed database and the site.

``SearchIndexSource`` serves item records and comment trees, plus feed ids and
user profiles from the realtime database. ``SiteSource`` serves rendered pages
and everything that needs a session: actions, login, replies.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

import structlog

from hnkit.errors import AuthError, ClientError, DecodeError
from hnkit.models import (
    AuthToken,
    Category,
    ContentTree,
    TopLevelItem,
    User,
    decode_content_tree,
    decode_item,
    decode_user,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from hnkit.config import NetworkSettings
    from hnkit.fetcher import Fetcher

log = structlog.get_logger()


def _decode_hits(payload: Any, context: str) -> list[TopLevelItem]:
    if not isinstance(payload, dict) or not isinstance(payload.get("hits"), list):
        raise DecodeError(f"Search response for {context} has no hits list")
    items: list[TopLevelItem] = []
    for hit in payload["hits"]:
        try:
            items.append(decode_item(hit))
        except DecodeError:
            log.warning(
                "search_hit_skipped",
                context=context,
                object_id=hit.get("objectID") if isinstance(hit, dict) else None,
            )
    return items


class SearchIndexSource:
    """Content source backed by the search index and the realtime database."""

    def __init__(self, fetcher: Fetcher, settings: NetworkSettings) -> None:
        self._fetcher = fetcher
        self._search_url = settings.search_url.rstrip("/")
        self._firebase_url = settings.firebase_url.rstrip("/")

    async def fetch_tree(self, item_id: int) -> ContentTree:
        payload = await self._fetcher.get_json(f"{self._search_url}/items/{item_id}")
        return decode_content_tree(payload)

    async def fetch_single(self, item_id: int) -> TopLevelItem:
        payload = await self._fetcher.get_json(f"{self._search_url}/items/{item_id}")
        return decode_item(payload)

    async def fetch_many(self, ids: Sequence[int]) -> list[TopLevelItem]:
        """Batch lookup through story tags. Jobs carry no story tag and come back missing."""
        if not ids:
            return []
        tags = ",".join(f"story_{item_id}" for item_id in ids)
        payload = await self._fetcher.get_json(
            f"{self._search_url}/search",
            params={"tags": f"({tags})", "hitsPerPage": len(ids)},
        )
        return _decode_hits(payload, context=f"{len(ids)} ids")

    async def search(self, query: str) -> list[TopLevelItem]:
        payload = await self._fetcher.get_json(
            f"{self._search_url}/search", params={"query": query}
        )
        return _decode_hits(payload, context=f"query {query!r}")

    async def fetch_ids_for_category(self, category: Category) -> list[int]:
        payload = await self._fetcher.get_json(f"{self._firebase_url}/{category.value}.json")
        if not isinstance(payload, list) or not all(isinstance(i, int) for i in payload):
            raise DecodeError(f"Feed {category.value} is not a list of ids")
        return payload

    async def fetch_user(self, username: str) -> User:
        payload = await self._fetcher.get_json(f"{self._firebase_url}/user/{username}.json")
        return decode_user(payload)


class SiteSource:
    """Markup source backed by the server-rendered site."""

    def __init__(self, fetcher: Fetcher, settings: NetworkSettings) -> None:
        self._fetcher = fetcher
        self.base_url = settings.site_url.rstrip("/")

    async def fetch_rendered_page(self, item_id: int, token: AuthToken | None = None) -> str:
        return await self._fetcher.get_text(
            f"{self.base_url}/item", params={"id": item_id}, token=token
        )

    async def perform(self, url: str, token: AuthToken) -> None:
        """Follow an action link (vote, favorite, flag) with the session cookie."""
        try:
            response = await self._fetcher.request("GET", url, token=token)
        except ClientError as exc:
            raise AuthError(f"Action rejected with HTTP {exc.status_code}: {url}") from exc
        # An expired session is bounced to the login form instead of erroring.
        if urlsplit(str(response.url)).path.rstrip("/") == "/login":
            raise AuthError(f"Action requires a valid session: {url}")

    async def login(self, username: str, password: str) -> AuthToken:
        response = await self._fetcher.request(
            "POST",
            f"{self.base_url}/login",
            data={"acct": username, "pw": password, "goto": "news"},
            follow_redirects=False,
        )
        value = response.cookies.get("user")
        if not value:
            log.warning("login_failed", username=username, status_code=response.status_code)
            raise AuthError("Login failed.")
        log.info("login_succeeded", username=username)
        return AuthToken(name="user", value=value)

    async def fetch_reply_form(self, item_id: int, token: AuthToken) -> str:
        return await self._fetcher.get_text(
            f"{self.base_url}/reply", params={"id": item_id}, token=token
        )

    async def submit_reply(self, item_id: int, hmac: str, text: str, token: AuthToken) -> None:
        await self._fetcher.request(
            "POST",
            f"{self.base_url}/comment",
            token=token,
            data={"parent": item_id, "goto": f"item?id={item_id}", "hmac": hmac, "text": text},
        )
