from __future__ import annotations

from typing import Optional

import httpx

from .errors import CompletionInitError
from .openai_compat_client import OpenAICompatClient

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
GROQ_DEFAULT_MODEL = "llama-3.3-70b-versatile"


class GroqClient(OpenAICompatClient):
    """Fallback provider. Always answers with its own model, ignoring the
    current-model setting, which names an OpenRouter slug."""

    name = "groq"

    def __init__(
        self,
        *,
        api_key: Optional[str],
        base_url: str = GROQ_BASE_URL,
        model: str = GROQ_DEFAULT_MODEL,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        if not api_key:
            raise CompletionInitError("Groq client not configured")
        super().__init__(api_key=api_key, base_url=base_url, client=client, timeout=timeout, default_model=model)

    async def generate_chat(self, messages: list[dict], *, model: Optional[str] = None, **kwargs) -> dict:
        return await super().generate_chat(messages, model=self.default_model, **kwargs)
