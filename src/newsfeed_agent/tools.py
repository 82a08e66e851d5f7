"""Agent tool implementations for the news feed agent."""

import asyncio
import json
from typing import Any, Coroutine

from langchain_core.tools import tool

from newsfeed_agent.aggregator import FeedState
from newsfeed_agent.errors import describe_error
from newsfeed_agent.news_api import normalize_category
from newsfeed_agent.session import NewsSession

# Module-level session reference, set during agent initialization.
# Tools run in a worker thread; the session lives on the main event loop.
_session: NewsSession | None = None
_loop: asyncio.AbstractEventLoop | None = None


def set_session(session: NewsSession, loop: asyncio.AbstractEventLoop) -> None:
    """Set the session used by all tools and the loop that owns it."""
    global _session, _loop
    _session = session
    _loop = loop


def _get_session() -> NewsSession:
    """Get the session, raising if not set."""
    if _session is None or _loop is None:
        raise RuntimeError("Session not initialized. Call set_session() first.")
    return _session


def _run(coro: Coroutine) -> Any:
    """Run a coroutine on the session's loop and wait for its result."""
    return asyncio.run_coroutine_threadsafe(coro, _loop).result()


def _format_article(article: dict) -> dict:
    return {
        "id": article.get("uuid") or article.get("url"),
        "title": article.get("title"),
        "url": article.get("url"),
        "source": article.get("source"),
        "published_at": article.get("published_at"),
        "summary": (article.get("description") or article.get("snippet") or "")[:200],
        "categories": article.get("categories") or [],
    }


def _feed_result(session: NewsSession, state: FeedState) -> str:
    items = session.visible_items()
    result = {
        "category": state.category or "all",
        "items": [_format_article(a) for a in items],
        "total": len(items),
        "pages_loaded": state.next_page - 1,
        "has_more": not state.at_end,
    }
    if state.last_error is not None:
        result["error"] = describe_error(state.last_error)
    return json.dumps(result)


@tool
def get_headlines() -> str:
    """Get today's top headlines, a few per category."""
    session = _get_session()
    items = _run(session.headlines.load())

    result = {
        "items": [_format_article(a) for a in items],
        "total": len(items),
    }
    if session.headlines.last_error is not None:
        result["error"] = describe_error(session.headlines.last_error)
    return json.dumps(result)


@tool
def get_feed(category: str | None = None) -> str:
    """Show the news feed, optionally switching to another category.

    Args:
        category: Category slug such as politics, science, sports, tech or
            business. Use "all" for every category. Leave unset to keep the
            current category.
    """
    session = _get_session()

    if category is not None or session.feed is None:
        try:
            slug = normalize_category(category)
        except ValueError as e:
            return json.dumps({"status": "error", "message": str(e)})
        state = _run(session.select_category(slug))
    else:
        state = session.feed.snapshot()

    return _feed_result(session, state)


@tool
def load_more() -> str:
    """Load the next page of the current feed."""
    session = _get_session()
    if session.feed is None:
        return json.dumps({
            "status": "error",
            "message": "No feed selected yet. Use get_feed first.",
        })

    state = _run(session.load_more())
    return _feed_result(session, state)


@tool
def refresh_feed() -> str:
    """Refresh the current feed and the headlines, bypassing cached pages."""
    session = _get_session()
    if session.feed is None:
        return json.dumps({
            "status": "error",
            "message": "No feed selected yet. Use get_feed first.",
        })

    state = _run(session.pull_to_refresh())
    return _feed_result(session, state)


@tool
def clear_cache() -> str:
    """Delete all cached API responses."""
    session = _get_session()
    removed = _run(session.clear_cache())

    return json.dumps({
        "status": "success",
        "entries_removed": removed,
    })
