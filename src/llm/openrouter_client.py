from __future__ import annotations

import os
from typing import Optional

import httpx

from .errors import CompletionInitError
from .openai_compat_client import OpenAICompatClient

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class OpenRouterClient(OpenAICompatClient):
    name = "openrouter"

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: str = OPENROUTER_BASE_URL,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
        http_referer: Optional[str] = "https://github.com/yehezkieldio/avalon",
        x_title: Optional[str] = "Avalon",
        default_model: Optional[str] = None,
    ):
        key = api_key or os.getenv("OPENROUTER_API_KEY")
        if not key:
            raise CompletionInitError("Missing OPENROUTER_API_KEY in environment or constructor")
        super().__init__(api_key=key, base_url=base_url, client=client, timeout=timeout, default_model=default_model)
        self.http_referer = http_referer
        self.x_title = x_title

    def extra_headers(self) -> dict:
        # Optional ranking headers for OpenRouter
        headers = {}
        if self.http_referer:
            headers["HTTP-Referer"] = self.http_referer
        if self.x_title:
            headers["X-Title"] = self.x_title
        return headers
