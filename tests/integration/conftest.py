"""Integration test fixtures.

Provides a fully wired HNClient whose backends are served by respx routes
(see tests/hn_backend.py) and whose cache runs on the hand-driven clock.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import respx

from hn_backend import Backend
from hnkit.cache import Cache
from hnkit.client import HNClient
from hnkit.config import PageSettings, RetrySettings, Settings

if TYPE_CHECKING:
    from conftest import FakeClock


@pytest.fixture()
def backend():
    with respx.mock(assert_all_called=False) as router:
        yield Backend(router)


def _client(clock: FakeClock, *, markup_only: bool = False) -> HNClient:
    settings = Settings(
        retry=RetrySettings(base_delay=0),
        page=PageSettings(markup_only=markup_only),
    )
    return HNClient(settings, cache=Cache(settings.cache, clock=clock))


@pytest.fixture()
async def client(clock: FakeClock):
    hn = _client(clock)
    yield hn
    await hn.aclose()


@pytest.fixture()
async def markup_only_client(clock: FakeClock):
    hn = _client(clock, markup_only=True)
    yield hn
    await hn.aclose()
