"""In-memory LRU + TTL cache.

Six independent collections share one lock, so the whole cache behaves as a
single serialized component: every public method runs to completion before
the next one starts. Nothing inside the lock awaits I/O.

Expiry and eviction are orthogonal. An entry leaves a collection when a
``get`` finds it older than the TTL, or when ``set`` pushes the collection
past its size bound and the entry is the least recently touched. Reads and
writes both count as touches.
"""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable, Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import structlog

from hnkit.config import CacheOptions

if TYPE_CHECKING:
    from hnkit.models import Category, Comment, Page, TopLevelItem, User

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

log = structlog.get_logger()


class CacheCollection(StrEnum):
    ITEMS = "items"
    PAGES = "pages"
    USERS = "users"
    CATEGORIES = "categories"
    SEARCH_RESULTS = "search_results"
    COMMENT_TREES = "comment_trees"


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    value: V
    stored_at: float

    def is_valid(self, now: float, ttl: float | None) -> bool:
        if ttl is None:
            return True
        return now - self.stored_at < ttl


class LRUCollection(Generic[K, V]):
    """One keyed collection. Not synchronized on its own; ``Cache`` holds the lock."""

    def __init__(
        self,
        name: str,
        max_size: int,
        ttl: float | None,
        clock: Callable[[], float],
    ) -> None:
        self.name = name
        self.max_size = max_size
        self.ttl = ttl
        self._clock = clock
        # Ordered oldest-touched first.
        self._entries: OrderedDict[K, CacheEntry[V]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def keys(self) -> list[K]:
        """Keys from least to most recently touched."""
        return list(self._entries)

    def get(self, key: K) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_valid(self._clock(), self.ttl):
            del self._entries[key]
            log.debug("cache_expired", collection=self.name, key=key)
            return None
        self._entries.move_to_end(key)
        return entry.value

    def set(self, key: K, value: V) -> None:
        self._entries[key] = CacheEntry(value=value, stored_at=self._clock())
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            log.debug("cache_evicted", collection=self.name, key=evicted)

    def get_many(self, keys: Iterable[K]) -> dict[K, V]:
        found: dict[K, V] = {}
        for key in keys:
            value = self.get(key)
            if value is not None:
                found[key] = value
        return found

    def clear(self) -> None:
        self._entries.clear()


class Cache:
    """Process-local cache for items, pages, users, feeds, searches and comment trees."""

    def __init__(
        self,
        options: CacheOptions | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.options = options or CacheOptions()
        ttl = self.options.ttl_seconds
        bounds = {
            CacheCollection.ITEMS: self.options.max_items,
            CacheCollection.PAGES: self.options.max_pages,
            CacheCollection.USERS: self.options.max_users,
            CacheCollection.CATEGORIES: self.options.max_categories,
            CacheCollection.SEARCH_RESULTS: self.options.max_search_results,
            CacheCollection.COMMENT_TREES: self.options.max_comment_trees,
        }
        self._collections: dict[CacheCollection, LRUCollection[Any, Any]] = {
            name: LRUCollection(name, max_size, ttl, clock) for name, max_size in bounds.items()
        }
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Generic access
    # ------------------------------------------------------------------

    def collection(self, name: CacheCollection) -> LRUCollection[Any, Any]:
        return self._collections[name]

    async def get(self, name: CacheCollection, key: Hashable) -> Any | None:
        async with self._lock:
            value = self._collections[name].get(key)
        log.debug("cache_hit" if value is not None else "cache_miss", collection=name, key=key)
        return value

    async def set(self, name: CacheCollection, key: Hashable, value: Any) -> None:
        async with self._lock:
            self._collections[name].set(key, value)

    async def get_many(self, name: CacheCollection, keys: Iterable[Hashable]) -> dict[Any, Any]:
        async with self._lock:
            return self._collections[name].get_many(keys)

    async def size(self, name: CacheCollection) -> int:
        async with self._lock:
            return len(self._collections[name])

    async def clear(self) -> None:
        """Empty every collection, e.g. on logout or a manual refresh."""
        async with self._lock:
            for collection in self._collections.values():
                collection.clear()
        log.info("cache_cleared")

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    async def get_item(self, item_id: int) -> TopLevelItem | None:
        return await self.get(CacheCollection.ITEMS, item_id)

    async def set_item(self, item: TopLevelItem) -> None:
        await self.set(CacheCollection.ITEMS, item.id, item)

    async def get_items(self, ids: Iterable[int]) -> dict[int, TopLevelItem]:
        return await self.get_many(CacheCollection.ITEMS, ids)

    async def set_items(self, items: Iterable[TopLevelItem]) -> None:
        async with self._lock:
            collection = self._collections[CacheCollection.ITEMS]
            for item in items:
                collection.set(item.id, item)

    # ------------------------------------------------------------------
    # Pages and comment trees
    # ------------------------------------------------------------------

    async def get_page(self, item_id: int) -> Page | None:
        return await self.get(CacheCollection.PAGES, item_id)

    async def set_page(self, item_id: int, page: Page) -> None:
        await self.set(CacheCollection.PAGES, item_id, page)

    async def get_comments(self, item_id: int) -> tuple[Comment, ...] | None:
        return await self.get(CacheCollection.COMMENT_TREES, item_id)

    async def set_comments(self, item_id: int, comments: tuple[Comment, ...]) -> None:
        await self.set(CacheCollection.COMMENT_TREES, item_id, comments)

    # ------------------------------------------------------------------
    # Users, feeds, searches
    # ------------------------------------------------------------------

    async def get_user(self, username: str) -> User | None:
        return await self.get(CacheCollection.USERS, username)

    async def set_user(self, user: User) -> None:
        await self.set(CacheCollection.USERS, user.id, user)

    # Sequences are stored as tuples and handed out as fresh lists.

    async def get_category_ids(self, category: Category) -> list[int] | None:
        ids = await self.get(CacheCollection.CATEGORIES, category)
        return None if ids is None else list(ids)

    async def set_category_ids(self, category: Category, ids: Sequence[int]) -> None:
        await self.set(CacheCollection.CATEGORIES, category, tuple(ids))

    async def get_search_results(self, query: str) -> list[TopLevelItem] | None:
        items = await self.get(CacheCollection.SEARCH_RESULTS, query)
        return None if items is None else list(items)

    async def set_search_results(self, query: str, items: Sequence[TopLevelItem]) -> None:
        await self.set(CacheCollection.SEARCH_RESULTS, query, tuple(items))
