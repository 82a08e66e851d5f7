"""Entry point for the news feed agent: python -m newsfeed_agent"""

import asyncio
import logging
import os
import uuid

import httpx
from langchain_core.messages import HumanMessage

from newsfeed_agent.agent import DEFAULT_MODEL, create_agent
from newsfeed_agent.cache import DEFAULT_TTL, ResponseCache
from newsfeed_agent.database import Database
from newsfeed_agent.http_client import DEFAULT_RETRIES, DEFAULT_TIMEOUT, FetchExecutor
from newsfeed_agent.news_api import (
    DEFAULT_BASE_URL,
    DEFAULT_LANGUAGE,
    DEFAULT_PAGE_SIZE,
    FREE_PLAN_MAX_LIMIT,
    NewsApiClient,
    normalize_category,
)
from newsfeed_agent.session import NewsSession
from newsfeed_agent.tools import set_session

DEFAULT_DB_PATH = "newsfeed_agent.db"
CHECKPOINT_DB_PATH = "newsfeed_agent_checkpoints.db"

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)
# Quiet noisy loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("langchain").setLevel(logging.WARNING)

logger = logging.getLogger("newsfeed_agent")


async def chat_loop(agent, config: dict, session: NewsSession) -> None:
    """Read user messages and answer them with the agent until EOF."""
    feed = session.feed.snapshot() if session.feed else None
    print(
        f"News Feed Agent ready: {len(session.headlines.items)} headlines, "
        f"{len(session.visible_items())} articles in "
        f"'{(feed.category if feed else '') or 'all'}'. Ctrl+C to quit.\n"
    )

    while True:
        try:
            user_input = await asyncio.to_thread(input, "You: ")
        except EOFError:
            break
        if not user_input.strip():
            continue

        try:
            response = await asyncio.to_thread(
                agent.invoke, {"messages": [HumanMessage(content=user_input)]}, config
            )
        except Exception as e:
            if "tool_use" in str(e) and "tool_result" in str(e):
                # Checkpoint holds an unanswered tool call; continue on a new thread
                config["configurable"]["thread_id"] = uuid.uuid4().hex
                print("\nAgent: Sorry, I lost track of our conversation. Please try again.\n")
            else:
                print(f"\nAgent: Sorry, something went wrong: {e}\n")
            continue

        print(f"\nAgent: {response['messages'][-1].content}\n")


async def main() -> None:
    """Initialize and run the news feed agent."""
    db_path = os.environ.get("NEWS_DB_PATH", DEFAULT_DB_PATH)
    checkpoint_path = os.environ.get("NEWS_CHECKPOINT_PATH", CHECKPOINT_DB_PATH)
    timeout = float(os.environ.get("NEWS_TIMEOUT", DEFAULT_TIMEOUT))

    db = Database(db_path)
    db.connect()
    http = httpx.AsyncClient(timeout=timeout, follow_redirects=True)
    session = None

    try:
        executor = FetchExecutor(
            http,
            timeout=timeout,
            retries=int(os.environ.get("NEWS_RETRIES", DEFAULT_RETRIES)),
        )
        cache = ResponseCache(
            executor, db, default_ttl=float(os.environ.get("NEWS_CACHE_TTL", DEFAULT_TTL))
        )
        try:
            client = NewsApiClient(
                cache,
                api_token=os.environ.get("NEWS_API_TOKEN", ""),
                base_url=os.environ.get("NEWS_API_BASE_URL", DEFAULT_BASE_URL),
                language=os.environ.get("NEWS_LANGUAGE", DEFAULT_LANGUAGE),
                page_size=int(os.environ.get("NEWS_PAGE_SIZE", DEFAULT_PAGE_SIZE)),
                max_limit=int(os.environ.get("NEWS_MAX_LIMIT", FREE_PLAN_MAX_LIMIT)),
            )
            category = normalize_category(os.environ.get("NEWS_DEFAULT_CATEGORY"))
        except ValueError as e:
            logger.error("%s", e)
            return

        session = NewsSession(client)
        set_session(session, asyncio.get_running_loop())

        state = await session.activate(category)
        logger.info(
            "Loaded %d headlines and %d feed articles",
            len(session.headlines.items), len(state.items),
        )

        agent = create_agent(
            checkpoint_db_path=checkpoint_path,
            model_name=os.environ.get("NEWS_AGENT_MODEL", DEFAULT_MODEL),
        )

        # Each session gets a fresh thread to avoid corrupted checkpoint issues
        config = {"configurable": {"thread_id": uuid.uuid4().hex}}
        await chat_loop(agent, config, session)
    except KeyboardInterrupt:
        print("\nGoodbye!")
    finally:
        if session is not None:
            session.close()
        await http.aclose()
        db.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
