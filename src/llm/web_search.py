from __future__ import annotations

import asyncio
import os
from typing import Any, Optional

from tavily import TavilyClient

from .errors import CompletionInitError
from ..logger_factory import get_logger
from ..utils.logfmt import fmt

WEB_SEARCH_SCHEMA = {
    "type": "function",
    "function": {
        "name": "web_search",
        "description": "Search the web for current information. Use for recent events or facts you are unsure about.",
        "parameters": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "The search query"}
            },
            "required": ["query"],
        },
    },
}


def format_results(query: str, response: dict) -> str:
    output: list[str] = [f'Search results for "{query}":']
    for r in response.get("results", []) or []:
        title = r.get("title") or ""
        url = r.get("url") or ""
        output.append(title or url)
        output.append(f"   URL: {url}")
        output.append(f"   Content: {r.get('content') or ''}")
        output.append("")
    if len(output) == 1:
        output.append("No results.")
    return "\n".join(output).rstrip()


class WebSearchTool:
    """Tavily-backed search exposed to the model as the `web_search` function."""

    name = "web_search"
    schema = WEB_SEARCH_SCHEMA

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        max_results: int = 5,
        client: Any = None,
        max_chars: int = 6000,
    ):
        self.max_results = max(1, min(5, int(max_results)))
        self.max_chars = max_chars
        self.log = get_logger("WebSearch")
        if client is not None:
            self._client = client
            return
        key = api_key or os.getenv("TAVILY_API_KEY")
        if not key:
            raise CompletionInitError("Missing TAVILY_API_KEY; the web search tool is unavailable")
        self._client = TavilyClient(api_key=key)

    async def run(self, query: str) -> str:
        # TavilyClient is blocking
        response = await asyncio.to_thread(
            self._client.search,
            query=query,
            search_depth="basic",
            topic="general",
            max_results=self.max_results,
        )
        results = (response or {}).get("results", []) or []
        self.log.info(f"web-search {fmt('query', query)} {fmt('results', len(results))}")
        text = format_results(query, {"results": results[: self.max_results]})
        if len(text) > self.max_chars:
            text = text[: self.max_chars - 3] + "..."
        return text
