"""LangGraph agent definition for the news feed agent."""

import logging
import sqlite3
from typing import Literal

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import AIMessage, SystemMessage, ToolMessage
from langgraph.checkpoint.sqlite import SqliteSaver
from langgraph.graph import END, START, MessagesState, StateGraph

from newsfeed_agent.tools import (
    clear_cache,
    get_feed,
    get_headlines,
    load_more,
    refresh_feed,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a News Feed Agent, a helpful assistant that lets users read the news.

You help users:
- See the top headlines of the day
- Browse the news feed for a category (politics, science, entertainment, sports, tech, business, and more)
- Load more articles when they reach the end of what is shown
- Refresh the feed to get the latest articles
- Clear cached responses when they suspect the news is out of date

When a user asks what is happening or for the top stories, use the get_headlines tool.
When a user asks for news about a topic, use the get_feed tool with the matching category slug.
When a user wants to see all categories, call get_feed with category "all".
When a user asks for more articles, use the load_more tool. If has_more is false, tell them there are no more articles.
When a user asks for the latest news or to refresh, use the refresh_feed tool.
When a user wants to clear the cache, use the clear_cache tool.
If a tool result contains an error, relay its title and message and suggest trying again.
Articles already listed among the headlines are left out of the feed; do not repeat them.
Present articles in a readable format: title, source, date, link, and a brief summary.
Be concise but informative in your responses."""

# All tools available to the agent
TOOLS = [get_headlines, get_feed, load_more, refresh_feed, clear_cache]

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"


def run_tool_calls(message: AIMessage, tools_by_name: dict) -> list[ToolMessage]:
    """Execute the tool calls requested by an AI message.

    A failing or unknown tool is reported back to the model as an error
    result instead of aborting the conversation turn.
    """
    results = []
    for tool_call in message.tool_calls:
        tool = tools_by_name.get(tool_call["name"])
        if tool is None:
            content, status = f"Unknown tool: {tool_call['name']}", "error"
        else:
            try:
                content, status = str(tool.invoke(tool_call["args"])), "success"
            except Exception as e:
                logger.warning("Tool %s failed: %s", tool_call["name"], e)
                content, status = f"Tool failed: {e}", "error"
        results.append(
            ToolMessage(content=content, tool_call_id=tool_call["id"], status=status)
        )
    return results


def create_agent(
    checkpoint_db_path: str = "newsfeed_agent_checkpoints.db",
    tools: list | None = None,
    model_name: str = DEFAULT_MODEL,
):
    """Create and compile the LangGraph agent.

    Args:
        checkpoint_db_path: Path to SQLite database for LangGraph checkpointing.
        tools: List of tool functions to bind to the agent. If None, uses default TOOLS.
        model_name: Anthropic model to chat with.

    Returns:
        Compiled LangGraph agent.
    """
    if tools is None:
        tools = TOOLS

    model = ChatAnthropic(model=model_name, temperature=0)
    model_with_tools = model.bind_tools(tools) if tools else model
    tools_by_name = {tool.name: tool for tool in tools}

    def agent_node(state: MessagesState):
        """Ask the model for the next step given the conversation so far."""
        messages = [SystemMessage(content=SYSTEM_PROMPT)] + state["messages"]
        return {"messages": [model_with_tools.invoke(messages)]}

    def tool_node(state: MessagesState):
        return {"messages": run_tool_calls(state["messages"][-1], tools_by_name)}

    def should_continue(state: MessagesState) -> Literal["tool_node", "__end__"]:
        if state["messages"][-1].tool_calls:
            return "tool_node"
        return END

    builder = StateGraph(MessagesState)
    builder.add_node("agent_node", agent_node)
    builder.add_node("tool_node", tool_node)
    builder.add_edge(START, "agent_node")
    builder.add_conditional_edges("agent_node", should_continue, ["tool_node", END])
    builder.add_edge("tool_node", "agent_node")

    # Conversation history persists in its own SQLite file
    checkpointer = SqliteSaver(sqlite3.connect(checkpoint_db_path, check_same_thread=False))
    return builder.compile(checkpointer=checkpointer)
