"""Reading session: the headline stream plus the feed for the active category."""

import asyncio
import logging

from newsfeed_agent.aggregator import FeedAggregator, FeedState, HeadlineStream, exclude_items
from newsfeed_agent.news_api import NewsApiClient

logger = logging.getLogger(__name__)

DEFAULT_HEADLINES_PER_CATEGORY = 3


class NewsSession:
    """Owns the feed state the reader interacts with.

    Switching category tears down the current aggregator and starts a new
    one; results still in flight for the old category are discarded.
    """

    def __init__(
        self,
        client: NewsApiClient,
        headlines_per_category: int = DEFAULT_HEADLINES_PER_CATEGORY,
    ):
        self.client = client
        self.headlines = HeadlineStream(
            lambda force: client.fetch_headlines(headlines_per_category, force=force)
        )
        self.feed: FeedAggregator | None = None

    async def activate(self, category: str = "") -> FeedState:
        """Load headlines (once) and select the starting category."""
        await self.headlines.load()
        return await self.select_category(category)

    async def select_category(self, category: str) -> FeedState:
        """Make category the active feed and load its first page."""
        if self.feed is not None and self.feed.category == category:
            return await self.feed.refresh()

        if self.feed is not None:
            self.feed.close()
        logger.info("Switching feed to '%s'", category or "all")
        self.feed = FeedAggregator(self.client.fetch_page, category=category)
        return await self.feed.refresh()

    async def load_more(self) -> FeedState:
        return await self._active_feed().load_more()

    async def pull_to_refresh(self) -> FeedState:
        """Refresh the feed and reload the headlines side by side."""
        feed = self._active_feed()
        state, _ = await asyncio.gather(
            feed.refresh(), self.headlines.load(force=True)
        )
        return state

    def visible_items(self) -> list[dict]:
        """Feed items that are not already shown among the headlines."""
        if self.feed is None:
            return []
        return exclude_items(self.feed.state.items, self.headlines.items)

    async def clear_cache(self) -> int:
        return await self.client.cache.clear()

    def close(self) -> None:
        if self.feed is not None:
            self.feed.close()
        self.headlines.close()

    def _active_feed(self) -> FeedAggregator:
        if self.feed is None:
            raise RuntimeError("No category selected. Call select_category() first.")
        return self.feed
