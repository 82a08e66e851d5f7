"""Shared test fixtures for news feed agent tests."""

import os
import tempfile

import httpx
import pytest

from newsfeed_agent.cache import ResponseCache
from newsfeed_agent.http_client import FetchExecutor
from newsfeed_agent.news_api import NewsApiClient

TEST_BASE_URL = "https://news.test/v1"
TEST_TOKEN = "test-token"


def make_article(uuid, category="general", url=None, **extra):
    """Build a provider article record."""
    article = {
        "uuid": uuid,
        "title": f"Article {uuid}",
        "description": f"Description of {uuid}",
        "url": url or f"https://example.com/{uuid}",
        "source": "example.com",
        "published_at": "2026-02-13T10:00:00.000000Z",
        "categories": [category] if category else [],
    }
    article.update(extra)
    return article


def page_body(*articles):
    """Provider response body for a list of articles."""
    return {"meta": {"found": len(articles), "returned": len(articles)}, "data": list(articles)}


class MemoryStore:
    """In-memory stand-in for the SQLite key-value store."""

    def __init__(self):
        self.data: dict[str, str] = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value

    def delete(self, key):
        return self.data.pop(key, None) is not None

    def list_keys(self, prefix=""):
        return sorted(k for k in self.data if k.startswith(prefix))


class FakeClock:
    """Manually advanced time source, in seconds."""

    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeUpstream:
    """httpx.MockTransport handler that records every request."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responder = lambda request: httpx.Response(200, json=page_body())

    def __call__(self, request):
        self.requests.append(request)
        return self.responder(request)

    @property
    def calls(self):
        return len(self.requests)


class FakePages:
    """Paged article source for aggregator tests.

    ``pages[category]`` holds page 1, page 2, ...; pages past the end are
    empty. ``errors[(category, page)]`` makes that fetch fail and
    ``gates[(page, force)]`` holds a fetch until the event is set.
    """

    def __init__(self, pages=None):
        self.pages: dict = pages or {}
        self.errors: dict = {}
        self.gates: dict = {}
        self.calls: list[tuple] = []

    async def __call__(self, category, page, force):
        self.calls.append((category, page, force))
        gate = self.gates.get((page, force))
        if gate is not None:
            await gate.wait()
        error = self.errors.get((category, page))
        if error is not None:
            raise error
        category_pages = self.pages.get(category, [])
        if page - 1 < len(category_pages):
            return list(category_pages[page - 1])
        return []


@pytest.fixture
def tmp_db_path():
    """Provide a temporary SQLite database path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        path = f.name
    yield path
    for suffix in ("", "-wal", "-shm"):
        try:
            os.unlink(path + suffix)
        except OSError:
            pass


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    """Delays requested by the retry loop, in seconds."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds):
        sleeps.append(seconds)
    return _sleep


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def executor(upstream, fake_sleep):
    client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    return FetchExecutor(client, sleep=fake_sleep)


@pytest.fixture
def cache(executor, memory_store, clock):
    return ResponseCache(executor, memory_store, clock=clock)


@pytest.fixture
def news_client(cache):
    return NewsApiClient(cache, api_token=TEST_TOKEN, base_url=TEST_BASE_URL)


@pytest.fixture
def fake_pages():
    return FakePages()



class FakeCache:
    def __init__(self):
        self.cleared = 0

    async def clear(self):
        self.cleared += 1
        return 4


class FakeNewsClient:
    """Stands in for NewsApiClient: paged feeds plus a headline list."""

    def __init__(self):
        self.fetch_page = FakePages()
        self.cache = FakeCache()
        self.headlines = []
        self.headline_calls = []
        self.headline_error = None

    async def fetch_headlines(self, per_category=3, force=False):
        self.headline_calls.append((per_category, force))
        if self.headline_error is not None:
            raise self.headline_error
        return list(self.headlines)
