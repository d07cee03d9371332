"""Unit tests for hnkit.sources against mocked HTTP backends."""

from __future__ import annotations

import httpx
import pytest
import respx

from hnkit.config import NetworkSettings
from hnkit.errors import AuthError, DecodeError
from hnkit.fetcher import Fetcher
from hnkit.models import AuthToken, Category, Job, Story
from hnkit.sources import SearchIndexSource, SiteSource

SEARCH = "https://hn.algolia.com/api/v1"
FIREBASE = "https://hacker-news.firebaseio.com/v0"
SITE = "https://news.ycombinator.com"

TOKEN = AuthToken(value="pg&secret")


def _hit(item_id: int) -> dict:
    return {
        "objectID": str(item_id),
        "_tags": ["story", f"story_{item_id}"],
        "title": f"Item {item_id}",
        "created_at_i": 1733726645,
        "url": f"https://example.com/{item_id}",
        "author": "pg",
        "points": 1,
        "num_comments": 0,
    }


@pytest.fixture()
async def fetcher():
    async with httpx.AsyncClient() as client:
        yield Fetcher(client)


@pytest.fixture()
def search_source(fetcher: Fetcher):
    return SearchIndexSource(fetcher, NetworkSettings())


@pytest.fixture()
def site_source(fetcher: Fetcher):
    return SiteSource(fetcher, NetworkSettings())


# ---------------------------------------------------------------------------
# SearchIndexSource
# ---------------------------------------------------------------------------


class TestSearchIndexSource:
    @respx.mock
    async def test_fetch_many_uses_story_tags(self, search_source) -> None:
        route = respx.get(f"{SEARCH}/search").mock(
            return_value=httpx.Response(200, json={"hits": [_hit(1), _hit(2)]})
        )
        items = await search_source.fetch_many([1, 2])
        assert [i.id for i in items] == [1, 2]
        params = route.calls.last.request.url.params
        assert params["tags"] == "(story_1,story_2)"
        assert params["hitsPerPage"] == "2"

    async def test_fetch_many_empty_makes_no_request(self, search_source) -> None:
        with respx.mock(assert_all_called=False) as mock:
            route = mock.get(f"{SEARCH}/search")
            assert await search_source.fetch_many([]) == []
            assert not route.called

    @respx.mock
    async def test_undecodable_hits_skipped(self, search_source) -> None:
        respx.get(f"{SEARCH}/search").mock(
            return_value=httpx.Response(200, json={"hits": [_hit(1), {"objectID": "2"}]})
        )
        assert [i.id for i in await search_source.search("rust")] == [1]

    @respx.mock
    async def test_search_without_hits_list(self, search_source) -> None:
        respx.get(f"{SEARCH}/search").mock(return_value=httpx.Response(200, json={}))
        with pytest.raises(DecodeError):
            await search_source.search("rust")

    @respx.mock
    async def test_fetch_single_job(self, search_source) -> None:
        respx.get(f"{SEARCH}/items/9").mock(
            return_value=httpx.Response(
                200,
                json={"id": 9, "type": "job", "title": "Hiring", "created_at_i": 1733726645},
            )
        )
        job = await search_source.fetch_single(9)
        assert isinstance(job, Job)

    @respx.mock
    async def test_fetch_tree(self, search_source) -> None:
        respx.get(f"{SEARCH}/items/5").mock(
            return_value=httpx.Response(
                200,
                json={
                    "id": 5,
                    "type": "story",
                    "title": "Fresh title",
                    "author": "pg",
                    "points": 9,
                    "created_at_i": 1733726645,
                    "children": [
                        {
                            "id": 6,
                            "author": "alice",
                            "text": "hi",
                            "created_at_i": 1733726700,
                            "children": [],
                        }
                    ],
                },
            )
        )
        tree = await search_source.fetch_tree(5)
        assert isinstance(tree.item, Story)
        assert tree.title == "Fresh title"
        assert [c.id for c in tree.children] == [6]

    @respx.mock
    async def test_category_ids(self, search_source) -> None:
        respx.get(f"{FIREBASE}/showstories.json").mock(
            return_value=httpx.Response(200, json=[3, 2, 1])
        )
        assert await search_source.fetch_ids_for_category(Category.SHOW) == [3, 2, 1]

    @respx.mock
    async def test_category_ids_malformed(self, search_source) -> None:
        respx.get(f"{FIREBASE}/topstories.json").mock(
            return_value=httpx.Response(200, json={"ids": [1]})
        )
        with pytest.raises(DecodeError):
            await search_source.fetch_ids_for_category(Category.TOP)

    @respx.mock
    async def test_missing_user(self, search_source) -> None:
        respx.get(f"{FIREBASE}/user/ghost.json").mock(
            return_value=httpx.Response(200, json=None)
        )
        with pytest.raises(DecodeError):
            await search_source.fetch_user("ghost")


# ---------------------------------------------------------------------------
# SiteSource
# ---------------------------------------------------------------------------


class TestSiteSource:
    @respx.mock
    async def test_fetch_rendered_page_sends_session(self, site_source) -> None:
        route = respx.get(f"{SITE}/item", params={"id": "5"}).mock(
            return_value=httpx.Response(200, text="<html></html>")
        )
        assert await site_source.fetch_rendered_page(5, TOKEN) == "<html></html>"
        assert route.calls.last.request.headers["Cookie"] == "user=pg&secret"

    @respx.mock
    async def test_perform(self, site_source) -> None:
        route = respx.get(f"{SITE}/vote").mock(return_value=httpx.Response(200, text="ok"))
        await site_source.perform(f"{SITE}/vote?id=5&how=up&auth=tok", TOKEN)
        assert route.called

    @respx.mock
    async def test_perform_bounced_to_login(self, site_source) -> None:
        respx.get(f"{SITE}/vote").mock(
            return_value=httpx.Response(302, headers={"Location": f"{SITE}/login?goto=news"})
        )
        respx.get(f"{SITE}/login").mock(return_value=httpx.Response(200, text="<form>"))
        with pytest.raises(AuthError):
            await site_source.perform(f"{SITE}/vote?id=5&how=up&auth=tok", TOKEN)

    @respx.mock
    async def test_perform_rejected(self, site_source) -> None:
        respx.get(f"{SITE}/vote").mock(return_value=httpx.Response(403))
        with pytest.raises(AuthError):
            await site_source.perform(f"{SITE}/vote?id=5&how=up&auth=tok", TOKEN)

    @respx.mock
    async def test_login_reads_session_cookie(self, site_source) -> None:
        route = respx.post(f"{SITE}/login").mock(
            return_value=httpx.Response(
                302,
                headers={"Location": f"{SITE}/news", "Set-Cookie": "user=pg&abc; Path=/"},
            )
        )
        token = await site_source.login("pg", "hunter2")
        assert token == AuthToken(name="user", value="pg&abc")
        body = route.calls.last.request.content.decode()
        assert "acct=pg" in body
        assert "pw=hunter2" in body

    @respx.mock
    async def test_login_without_cookie_fails(self, site_source) -> None:
        respx.post(f"{SITE}/login").mock(return_value=httpx.Response(200, text="Bad login."))
        with pytest.raises(AuthError):
            await site_source.login("pg", "wrong")

    @respx.mock
    async def test_submit_reply(self, site_source) -> None:
        route = respx.post(f"{SITE}/comment").mock(return_value=httpx.Response(200))
        await site_source.submit_reply(5, "h4c", "Nice post", TOKEN)
        body = route.calls.last.request.content.decode()
        assert "parent=5" in body
        assert "hmac=h4c" in body
        assert "text=Nice+post" in body
