"""Client for the upstream news provider (TheNewsAPI /news/all)."""

import logging
from typing import Any

from newsfeed_agent.cache import ResponseCache
from newsfeed_agent.http_client import FetchRequest

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.thenewsapi.com/v1"
DEFAULT_LANGUAGE = "en"
DEFAULT_PAGE_SIZE = 20
FREE_PLAN_MAX_LIMIT = 3
DEFAULT_CATEGORY = "general"

# Slugs accepted by the provider's `categories` parameter. Empty means all.
CATEGORIES = (
    "",
    "general",
    "politics",
    "science",
    "entertainment",
    "sports",
    "tech",
    "business",
    "travel",
    "food",
    "world",
    "health",
)


def normalize_category(category: str | None) -> str:
    """Map a user-supplied category to a provider slug.

    ``None``, blank and ``"all"`` mean every category and map to ``""``.

    Raises:
        ValueError: If the slug is not one the provider understands.
    """
    slug = (category or "").strip().lower()
    if slug == "all":
        slug = ""
    if slug not in CATEGORIES:
        raise ValueError(
            f"Unknown category '{category}'. "
            f"Choose one of: all, {', '.join(c for c in CATEGORIES if c)}."
        )
    return slug


def article_identity(article: dict) -> str | None:
    """Stable identity of an article: provider uuid, else its URL."""
    return article.get("uuid") or article.get("url") or None


def dedupe(items: list[dict]) -> list[dict]:
    """Drop items without identity and repeats, keeping first occurrences."""
    seen: set[str] = set()
    unique = []
    for item in items:
        identity = article_identity(item)
        if not identity or identity in seen:
            continue
        seen.add(identity)
        unique.append(item)
    return unique


class NewsApiClient:
    """Builds provider requests and resolves them through the response cache."""

    def __init__(
        self,
        cache: ResponseCache,
        api_token: str,
        base_url: str = DEFAULT_BASE_URL,
        language: str = DEFAULT_LANGUAGE,
        locale: str | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_limit: int = FREE_PLAN_MAX_LIMIT,
        ttl: float | None = None,
    ):
        if not api_token:
            raise ValueError(
                "Missing news API token. Set NEWS_API_TOKEN in the environment."
            )
        self.cache = cache
        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.language = language
        self.locale = locale
        self.page_size = page_size
        self.max_limit = max_limit
        self.ttl = ttl

    def build_request(
        self,
        category: str | None = None,
        page: int = 1,
        search: str | None = None,
        limit: int | None = None,
    ) -> FetchRequest:
        """Request for one page of /news/all."""
        return FetchRequest.build(
            f"{self.base_url}/news/all",
            params={
                "api_token": self.api_token,
                "language": self.language or None,
                "locale": self.locale or None,
                "categories": category or None,
                "search": search or None,
                "limit": self._cap_limit(limit if limit is not None else self.page_size),
                "page": page,
            },
        )

    async def fetch_page(
        self,
        category: str | None = None,
        page: int = 1,
        force: bool = False,
        search: str | None = None,
    ) -> list[dict]:
        """Fetch one page of articles, de-duplicated within the page.

        Raises:
            ApiError: If the request fails and no cached copy is available.
        """
        request = self.build_request(category=category, page=page, search=search)
        payload = await self.cache.resolve(request, ttl=self.ttl, force=force)
        items = dedupe(_articles(payload))
        logger.debug(
            "Fetched page %d of '%s': %d articles", page, category or "all", len(items)
        )
        return items

    async def fetch_headlines(
        self, per_category: int = 3, force: bool = False
    ) -> list[dict]:
        """Fetch top articles grouped by their first category.

        At most ``per_category`` articles are kept per group; groups appear
        in the order their first article was seen.
        """
        approx_need = max(3, min(50, per_category * 8))
        request = self.build_request(page=1, limit=approx_need)
        payload = await self.cache.resolve(request, ttl=self.ttl, force=force)

        groups: dict[str, list[dict]] = {}
        for article in _articles(payload):
            categories = article.get("categories") or []
            group = groups.setdefault(categories[0] if categories else DEFAULT_CATEGORY, [])
            if len(group) < per_category:
                group.append(article)

        return dedupe([a for group in groups.values() for a in group])

    def _cap_limit(self, requested: int) -> int:
        return max(1, min(requested, self.max_limit))


def _articles(payload: Any) -> list[dict]:
    """Extract the article list from a provider response body."""
    data = payload.get("data") if isinstance(payload, dict) else payload
    if not isinstance(data, list):
        return []
    return [a for a in data if isinstance(a, dict)]
