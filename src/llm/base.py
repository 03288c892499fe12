from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


class LLMClient(ABC):
    name: str = "llm"

    @abstractmethod
    async def generate_chat(
        self,
        messages: list[dict],
        *,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        tools: Optional[list[dict]] = None,
        context_fields: Optional[dict] = None,
    ) -> dict:
        """Return {"text": str, "tool_calls": list[dict], "usage": dict}."""
        ...

    async def aclose(self) -> None:
        return None
