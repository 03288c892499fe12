from __future__ import annotations

import json
from typing import Optional

from .llm.base import LLMClient
from .llm.errors import AgentIterationLimitError
from .llm.web_search import WebSearchTool
from .logger_factory import get_logger
from .prompt_template_engine import PromptTemplateEngine
from .utils.logfmt import fmt, preview

AGENT_FALLBACK_REPLY = "Sorry, I couldn't process that."


class ToolAgent:
    """Tool-calling loop with a single web search tool.

    Each iteration is one model call. A call without tool_calls ends the loop
    with its content; running out of iterations or any error yields
    AGENT_FALLBACK_REPLY.
    """

    def __init__(
        self,
        llm: LLMClient,
        templates: PromptTemplateEngine,
        search: WebSearchTool,
        *,
        model: str,
        max_iterations: int = 5,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ):
        self.llm = llm
        self.templates = templates
        self.search = search
        self.model = model
        self.max_iterations = max(1, int(max_iterations))
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.log = get_logger("ToolAgent")

    async def _run_tool(self, call: dict) -> dict:
        fn = call.get("function") or {}
        name = fn.get("name")
        try:
            args = json.loads(fn.get("arguments") or "{}")
        except (TypeError, ValueError):
            args = {}
        if name != self.search.name:
            content = f"Unknown tool: {name}"
        elif not isinstance(args, dict) or not str(args.get("query") or "").strip():
            content = "The web_search tool needs a non-empty 'query' argument."
        else:
            content = await self.search.run(str(args["query"]))
        return {"role": "tool", "tool_call_id": call.get("id"), "name": name, "content": content}

    async def _loop(self, query: str, user_id: Optional[str], correlation: Optional[str]) -> str:
        messages = self.templates.build_messages(query, model=self.model, with_tools=True)
        for iteration in range(1, self.max_iterations + 1):
            result = await self.llm.generate_chat(
                messages,
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                tools=[self.search.schema],
                context_fields={"user": user_id, "correlation": correlation},
            )
            calls = result.get("tool_calls") or []
            if not calls:
                self.log.info(f"agent-finish {fmt('iterations', iteration)} {fmt('correlation', correlation)}")
                return result.get("text") or ""
            # Echo the assistant turn back so tool results can reference its call ids
            assistant: dict = {"role": "assistant", "tool_calls": calls}
            if result.get("text"):
                assistant["content"] = result["text"]
            messages.append(assistant)
            for call in calls:
                messages.append(await self._run_tool(call))
        raise AgentIterationLimitError(f"no final answer after {self.max_iterations} iterations")

    async def complete(self, query: str, user_id: Optional[str] = None, correlation: Optional[str] = None) -> str:
        self.log.info(f"agent-run {fmt('model', self.model)} {fmt('query', preview(query))} {fmt('correlation', correlation)}")
        try:
            output = await self._loop(query, user_id, correlation)
        except Exception as e:
            self.log.error(f"agent-error {fmt('correlation', correlation)} {fmt('err', e)}")
            return AGENT_FALLBACK_REPLY
        return output or AGENT_FALLBACK_REPLY

    async def aclose(self) -> None:
        await self.llm.aclose()
