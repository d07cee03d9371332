"""HNClient: the façade application code talks to.

Assembles pages from the search index (comment content and nesting) and the
rendered site (true order, shading, actions), caching whatever is safe to
share and coalescing identical concurrent fetches.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, TypeVar

import structlog

from hnkit.cache import Cache
from hnkit.coalescer import RequestCoalescer
from hnkit.config import Settings
from hnkit.errors import AuthError, HNKitError, StructuralParseError
from hnkit.fetcher import Fetcher, build_http_client
from hnkit.markup import MarkupParser
from hnkit.models import Job, Page, Story
from hnkit.retry import RetryPolicy
from hnkit.sources import SearchIndexSource, SiteSource
from hnkit.tree import build_comment_tree, reconcile_comment_tree

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Hashable, Sequence
    from types import TracebackType

    import httpx

    from hnkit.models import (
        Action,
        AuthToken,
        Category,
        Comment,
        ContentTree,
        TopLevelItem,
        User,
    )
    from hnkit.protocols import ContentSource, MarkupSource

T = TypeVar("T")

log = structlog.get_logger()


def _with_tree_fields(
    item: TopLevelItem,
    children: Sequence[Comment],
    tree: ContentTree | None = None,
) -> TopLevelItem:
    """Refresh title, points and comment count from the freshest data at hand."""
    if isinstance(item, Story):
        update: dict[str, Any] = {"comment_count": sum(c.comment_count for c in children)}
        if tree is not None:
            update["title"] = tree.title
            update["points"] = tree.points
        return item.model_copy(update=update)
    if isinstance(item, Job) and tree is not None:
        return item.model_copy(update={"title": tree.title})
    return item


class HNClient:
    """Cached, coalesced, retrying access to stories, pages, users and actions."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        content_source: ContentSource | None = None,
        markup_source: MarkupSource | None = None,
        cache: Cache | None = None,
        coalescer: RequestCoalescer | None = None,
        retry_policy: RetryPolicy | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self._owned_client: httpx.AsyncClient | None = None

        if content_source is None or markup_source is None:
            if http_client is None:
                http_client = self._owned_client = build_http_client(self.settings.network)
            fetcher = Fetcher(http_client)
            content_source = content_source or SearchIndexSource(fetcher, self.settings.network)
            markup_source = markup_source or SiteSource(fetcher, self.settings.network)

        self.content: ContentSource = content_source
        self.markup: MarkupSource = markup_source
        self.cache = cache or Cache(self.settings.cache)
        self.coalescer = coalescer or RequestCoalescer()
        self.retry = retry_policy or RetryPolicy(self.settings.retry.to_configuration())

    async def __aenter__(self) -> HNClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owned_client is not None:
            await self._owned_client.aclose()
            self._owned_client = None

    async def _fetch(self, key: Hashable, operation: Callable[[], Awaitable[T]]) -> T:
        """One network operation: coalesced per key, retried inside the shared task."""
        label = str(key[0]) if isinstance(key, tuple) else str(key)
        return await self.coalescer.fetch(key, lambda: self.retry.run(operation, label=label))

    # ------------------------------------------------------------------
    # Items, feeds, search
    # ------------------------------------------------------------------

    async def get_items(self, ids: Sequence[int]) -> list[TopLevelItem]:
        """Items in the order of ``ids``.

        Ids the batch lookup misses (jobs have no story tag) are fetched one by
        one; any of those that fail are left out of the result.
        """
        cached = await self.cache.get_items(ids)
        missing = list(dict.fromkeys(i for i in ids if i not in cached))

        fetched: dict[int, TopLevelItem] = {}
        if missing:
            batch = await self._fetch(
                ("items", tuple(missing)), lambda: self.content.fetch_many(missing)
            )
            fetched = {item.id: item for item in batch}

            still_missing = [i for i in missing if i not in fetched]
            if still_missing:
                singles = await asyncio.gather(*(self._get_single_or_none(i) for i in still_missing))
                fetched.update({item.id: item for item in singles if item is not None})

            await self.cache.set_items(fetched.values())
            log.info(
                "items_fetched",
                requested=len(ids),
                cached=len(cached),
                fetched=len(fetched),
            )

        merged = {**cached, **fetched}
        return [merged[i] for i in ids if i in merged]

    async def _get_single_or_none(self, item_id: int) -> TopLevelItem | None:
        try:
            return await self._fetch(("item", item_id), lambda: self.content.fetch_single(item_id))
        except HNKitError as exc:
            log.warning("item_fetch_skipped", item_id=item_id, code=exc.code, error=exc.message)
            return None

    async def get_items_page(
        self, ids: Sequence[int], page: int, page_size: int = 20
    ) -> list[TopLevelItem]:
        start = page * page_size
        if page < 0 or start >= len(ids):
            return []
        return await self.get_items(ids[start : start + page_size])

    async def get_item_ids(self, category: Category, *, force_refresh: bool = False) -> list[int]:
        if not force_refresh:
            cached = await self.cache.get_category_ids(category)
            if cached is not None:
                return cached
        ids = await self._fetch(
            ("category", category), lambda: self.content.fetch_ids_for_category(category)
        )
        await self.cache.set_category_ids(category, ids)
        return ids

    async def search(self, query: str, *, force_refresh: bool = False) -> list[TopLevelItem]:
        if not force_refresh:
            cached = await self.cache.get_search_results(query)
            if cached is not None:
                return cached
        results = await self._fetch(("search", query), lambda: self.content.search(query))
        await self.cache.set_search_results(query, results)
        return results

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, username: str, *, force_refresh: bool = False) -> User:
        if not force_refresh:
            cached = await self.cache.get_user(username)
            if cached is not None:
                return cached
        user = await self._fetch(("user", username), lambda: self.content.fetch_user(username))
        await self.cache.set_user(user)
        return user

    async def get_user_stories(self, user: User, limit: int = 10) -> list[TopLevelItem]:
        if not user.submitted:
            return []
        return await self.get_items(user.submitted[:limit])

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    async def get_page(
        self,
        item_id: int,
        token: AuthToken | None = None,
        *,
        force_refresh: bool = False,
    ) -> Page:
        """Assemble the page for ``item_id``.

        Available actions depend on the account, so authenticated calls never
        read or write the page cache; the comment tree is account-independent
        and always cached.
        """
        page_log = log.bind(item_id=item_id, authenticated=token is not None)

        if not force_refresh and token is None:
            cached_page = await self.cache.get_page(item_id)
            if cached_page is not None:
                page_log.info("page_served", source="cache")
                return cached_page

        cached_comments = None if force_refresh else await self.cache.get_comments(item_id)

        if cached_comments is not None:
            page_log.info("comment_tree_cache_hit")
            html, item = await asyncio.gather(
                self._fetch_markup(item_id, token), self._resolve_item(item_id)
            )
            parser = self._parser(html)
            children = cached_comments
            item = _with_tree_fields(item, children)
        elif self.settings.page.markup_only:
            html = await self._fetch_markup(item_id, token)
            parser = self._parser(html)
            try:
                children = build_comment_tree(parser.flat_comments())
                item = _with_tree_fields(await self._resolve_item(item_id), children)
            except StructuralParseError as exc:
                page_log.warning("markup_fallback", error=exc.message)
                tree = await self._fetch_tree(item_id)
                children = self._reconcile(tree, parser)
                item = _with_tree_fields(tree.item, children, tree)
        else:
            tree, html = await asyncio.gather(
                self._fetch_tree(item_id), self._fetch_markup(item_id, token)
            )
            parser = self._parser(html)
            children = self._reconcile(tree, parser)
            item = _with_tree_fields(tree.item, children, tree)

        page = Page(item=item, children=children, actions=parser.available_actions())

        await self.cache.set_comments(item_id, children)
        await self.cache.set_item(item)
        if token is None:
            await self.cache.set_page(item_id, page)

        page_log.info("page_served", source="network", comment_count=page.comment_count)
        return page

    def _parser(self, html: str) -> MarkupParser:
        return MarkupParser(html, base_url=self.markup.base_url)

    @staticmethod
    def _reconcile(tree: ContentTree, parser: MarkupParser) -> tuple[Comment, ...]:
        return reconcile_comment_tree(
            tree.children, parser.true_comment_order(), parser.comment_colors()
        )

    async def _fetch_tree(self, item_id: int) -> ContentTree:
        return await self._fetch(("tree", item_id), lambda: self.content.fetch_tree(item_id))

    async def _fetch_markup(self, item_id: int, token: AuthToken | None) -> str:
        # Rendered pages differ per session, so the session is part of the key.
        session = token.value if token is not None else None
        return await self._fetch(
            ("markup", item_id, session),
            lambda: self.markup.fetch_rendered_page(item_id, token),
        )

    async def _resolve_item(self, item_id: int) -> TopLevelItem:
        item = await self.cache.get_item(item_id)
        if item is not None:
            return item
        item = await self._fetch(("item", item_id), lambda: self.content.fetch_single(item_id))
        await self.cache.set_item(item)
        return item

    # ------------------------------------------------------------------
    # Session-bound operations
    # ------------------------------------------------------------------

    async def execute_action(self, action: Action, token: AuthToken, page: Page) -> Page:
        """Perform ``action`` and return ``page`` with the affected action set updated.

        The page is not fetched again; the new action set is derived locally.
        """
        await self.markup.perform(action.url, token)
        owner = page.owner_of(action)
        if owner is None:
            log.warning("action_not_on_page", kind=action.kind, item_id=page.item.id)
            return page
        log.info("action_executed", kind=action.kind, target_id=owner)
        return page.with_action_applied(owner, action)

    async def login(self, username: str, password: str) -> AuthToken:
        return await self.markup.login(username, password)

    async def reply(self, item_id: int, text: str, token: AuthToken) -> None:
        form = await self.markup.fetch_reply_form(item_id, token)
        hmac = self._parser(form).reply_hmac()
        if hmac is None:
            raise AuthError(f"Reply form for {item_id} is unavailable; the session may be invalid.")
        await self.markup.submit_reply(item_id, hmac, text, token)
        log.info("reply_submitted", item_id=item_id)

    async def clear_cache(self) -> None:
        await self.cache.clear()
