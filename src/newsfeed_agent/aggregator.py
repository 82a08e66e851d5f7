"""Paginated feed state for one category, plus the headline stream."""

import logging
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable

from newsfeed_agent.errors import ApiError
from newsfeed_agent.news_api import article_identity

logger = logging.getLogger(__name__)

FetchPage = Callable[[str | None, int, bool], Awaitable[list[dict]]]
FetchHeadlines = Callable[[bool], Awaitable[list[dict]]]
Identity = Callable[[dict], str | None]


@dataclass
class FeedState:
    """What the reader currently shows for one category."""

    category: str | None = None
    items: list[dict] = field(default_factory=list)
    next_page: int = 1
    at_end: bool = False
    is_loading: bool = False
    is_refreshing: bool = False
    last_error: ApiError | None = None
    generation: int = 0


def merge_unique(
    existing: list[dict], batch: list[dict], identity: Identity = article_identity
) -> list[dict]:
    """Append items from batch whose identity is not already present."""
    seen = {identity(item) for item in existing}
    merged = list(existing)
    for item in batch:
        key = identity(item)
        if key is None or key in seen:
            continue
        seen.add(key)
        merged.append(item)
    return merged


def exclude_items(
    items: list[dict], excluded: list[dict], identity: Identity = article_identity
) -> list[dict]:
    """Items not present (by identity) in excluded. Neither list is modified."""
    excluded_keys = {identity(item) for item in excluded}
    excluded_keys.discard(None)
    return [item for item in items if identity(item) not in excluded_keys]


class FeedAggregator:
    """Pagination controller for one category.

    ``load_more`` is ignored while any fetch is in flight or once the feed
    has ended. ``refresh`` always runs and supersedes whatever is in
    flight: every refresh bumps the state's generation, and results that
    come back for an older generation, or after ``close``, are dropped.
    """

    def __init__(
        self,
        fetch_page: FetchPage,
        category: str | None = None,
        identity: Identity = article_identity,
    ):
        self._fetch_page = fetch_page
        self._identity = identity
        self._closed = False
        self.state = FeedState(category=category)

    @property
    def category(self) -> str | None:
        return self.state.category

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop accepting results; pending fetches will not touch the state."""
        self._closed = True

    def snapshot(self) -> FeedState:
        """Copy of the current state that later fetches will not mutate."""
        return replace(self.state, items=list(self.state.items))

    def _is_current(self, generation: int) -> bool:
        return not self._closed and self.state.generation == generation

    async def load_more(self) -> FeedState:
        """Fetch the next page and append its unseen items."""
        state = self.state
        if self._closed or state.is_loading or state.is_refreshing or state.at_end:
            return self.snapshot()

        generation = state.generation
        page = state.next_page
        state.is_loading = True
        state.last_error = None

        try:
            batch = await self._fetch_page(state.category, page, False)
        except ApiError as e:
            if self._is_current(generation):
                logger.warning(
                    "Loading page %d of '%s' failed: %s",
                    page, state.category or "all", e.message,
                )
                self.state.last_error = e
        else:
            if self._is_current(generation):
                self.state.items = merge_unique(self.state.items, batch, self._identity)
                self.state.next_page = page + 1
                if not batch:
                    self.state.at_end = True
        finally:
            if self._is_current(generation):
                self.state.is_loading = False

        return self.snapshot()

    async def refresh(self) -> FeedState:
        """Refetch page 1 bypassing cache freshness and replace the items.

        On failure the previous items stay in place.
        """
        if self._closed:
            return self.snapshot()

        state = self.state
        state.generation += 1
        generation = state.generation
        state.is_loading = False
        state.is_refreshing = True
        state.at_end = False
        state.last_error = None

        try:
            batch = await self._fetch_page(state.category, 1, True)
        except ApiError as e:
            if self._is_current(generation):
                logger.warning(
                    "Refreshing '%s' failed: %s", state.category or "all", e.message
                )
                self.state.last_error = e
        else:
            if self._is_current(generation):
                self.state.items = merge_unique([], batch, self._identity)
                self.state.next_page = 2
                self.state.at_end = not batch
        finally:
            if self._is_current(generation):
                self.state.is_refreshing = False

        return self.snapshot()


class HeadlineStream:
    """Top articles fetched once per activation, not paginated."""

    def __init__(self, fetch_headlines: FetchHeadlines):
        self._fetch_headlines = fetch_headlines
        self._closed = False
        self.items: list[dict] = []
        self.loaded = False
        self.is_loading = False
        self.last_error: ApiError | None = None

    def close(self) -> None:
        self._closed = True

    async def load(self, force: bool = False) -> list[dict]:
        """Fetch headlines unless already loaded; ``force`` reloads them."""
        if self._closed or self.is_loading or (self.loaded and not force):
            return list(self.items)

        self.is_loading = True
        self.last_error = None
        try:
            items = await self._fetch_headlines(force)
        except ApiError as e:
            if not self._closed:
                logger.warning("Loading headlines failed: %s", e.message)
                self.last_error = e
        else:
            if not self._closed:
                self.items = items
                self.loaded = True
        finally:
            self.is_loading = False

        return list(self.items)
