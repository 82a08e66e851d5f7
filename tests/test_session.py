"""Tests for the reading session: category switching and headline exclusion."""

import asyncio

import pytest

from conftest import FakeNewsClient, make_article
from newsfeed_agent.errors import ApiError, ErrorKind
from newsfeed_agent.session import NewsSession


@pytest.fixture
def client():
    client = FakeNewsClient()
    client.fetch_page.pages = {
        "": [[make_article("h1"), make_article("a1"), make_article("a2")]],
        "sports": [[make_article("s1"), make_article("h1")], [make_article("s2")]],
        "science": [[make_article("c1"), make_article("c2")]],
    }
    client.headlines = [make_article("h1", "general")]
    return client


@pytest.fixture
def session(client):
    return NewsSession(client)


def _ids(items):
    return [item["uuid"] for item in items]


async def test_activate_loads_headlines_and_first_page(session, client):
    state = await session.activate()

    assert client.headline_calls == [(3, False)]
    assert client.fetch_page.calls == [("", 1, True)]
    assert _ids(state.items) == ["h1", "a1", "a2"]
    assert _ids(session.visible_items()) == ["a1", "a2"]


async def test_switching_category_replaces_items(session, client):
    await session.activate("sports")
    await session.load_more()
    assert _ids(session.feed.state.items) == ["s1", "h1", "s2"]

    state = await session.select_category("science")

    assert state.category == "science"
    assert _ids(state.items) == ["c1", "c2"]
    assert state.next_page == 2


async def test_switching_back_starts_from_page_one(session, client):
    await session.activate("sports")
    await session.load_more()
    await session.select_category("science")

    state = await session.select_category("sports")

    assert _ids(state.items) == ["s1", "h1"]
    assert client.fetch_page.calls[-1] == ("sports", 1, True)


async def test_reselecting_category_refreshes_in_place(session, client):
    await session.activate("sports")
    feed = session.feed

    await session.select_category("sports")

    assert session.feed is feed
    assert client.fetch_page.calls == [("sports", 1, True), ("sports", 1, True)]


async def test_old_category_results_are_discarded(session, client):
    await session.activate("sports")
    gate = asyncio.Event()
    client.fetch_page.gates[(2, False)] = gate
    old_feed = session.feed

    pending = asyncio.create_task(session.load_more())
    await asyncio.sleep(0)
    await session.select_category("science")
    gate.set()
    await pending

    assert old_feed.closed
    assert _ids(old_feed.state.items) == ["s1", "h1"]
    assert _ids(session.feed.state.items) == ["c1", "c2"]


async def test_pull_to_refresh_reloads_feed_and_headlines(session, client):
    await session.activate("sports")
    client.headlines = [make_article("s1", "sports")]

    state = await session.pull_to_refresh()

    assert client.headline_calls == [(3, False), (3, True)]
    assert client.fetch_page.calls[-1] == ("sports", 1, True)
    assert _ids(state.items) == ["s1", "h1"]
    assert _ids(session.visible_items()) == ["h1"]


async def test_headline_failure_does_not_block_feed(session, client):
    client.headline_error = ApiError(ErrorKind.TIMEOUT, "Request timeout")

    state = await session.activate("science")

    assert _ids(state.items) == ["c1", "c2"]
    assert session.headlines.last_error.kind is ErrorKind.TIMEOUT
    assert _ids(session.visible_items()) == ["c1", "c2"]


async def test_load_more_requires_category(session):
    with pytest.raises(RuntimeError):
        await session.load_more()
    assert session.visible_items() == []


async def test_clear_cache_delegates(session, client):
    assert await session.clear_cache() == 4
    assert client.cache.cleared == 1


async def test_close_stops_feed_and_headlines(session):
    await session.activate("sports")

    session.close()

    assert session.feed.closed
    assert await session.load_more() == session.feed.snapshot()
