from __future__ import annotations

import json
from typing import Optional

import httpx

from .base import LLMClient
from .errors import ProviderError
from ..logger_factory import get_logger
from ..utils.logfmt import fmt


def _content_text(content) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    # Some providers answer with a list of content parts
    return json.dumps(content, ensure_ascii=False)


class OpenAICompatClient(LLMClient):
    """Chat client for any OpenAI-compatible /chat/completions endpoint.

    One request per call; retrying is left to the caller's fallback chain.
    """

    name = "openai-compat"

    def __init__(
        self,
        *,
        api_key: Optional[str],
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
        default_model: Optional[str] = None,
    ):
        self.log = get_logger(self.__class__.__name__)
        self.api_key = api_key
        u = base_url.rstrip("/")
        self.chat_url = u if u.endswith("/chat/completions") else u + "/chat/completions"
        self.timeout = timeout
        self.default_model = default_model
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    def extra_headers(self) -> dict:
        return {}

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        headers.update(self.extra_headers())
        return headers

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
        use_model = model or self.default_model
        payload: dict = {"model": use_model, "messages": messages, "stream": False}
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if temperature is not None:
            payload["temperature"] = temperature
        if tools:
            payload["tools"] = tools

        cf = context_fields or {}
        self.log.info(
            f"[llm-start] {fmt('provider', self.name)} {fmt('model', use_model)} "
            f"{fmt('tools', len(tools or []))} {fmt('correlation', cf.get('correlation'))}"
        )
        try:
            r = await self._client.post(self.chat_url, json=payload, headers=self._headers(), timeout=self.timeout)
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"{self.name} request failed: {type(e).__name__}: {e}") from e
        if r.is_error:
            body = r.text[:500] if r.text else "<no body>"
            raise ProviderError(self.name, f"{self.name} HTTP error {r.status_code}: {body}", status=r.status_code)
        try:
            data = r.json()
            message = data["choices"][0]["message"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError(self.name, f"{self.name} response parse error: {r.text[:500]}") from e

        tool_calls = message.get("tool_calls") or []
        usage = data.get("usage") or {}
        self.log.info(
            f"[llm-finish] {fmt('provider', self.name)} {fmt('model', use_model)} "
            f"{fmt('tool_calls', len(tool_calls))} {fmt('total_tokens', usage.get('total_tokens'))} "
            f"{fmt('correlation', cf.get('correlation'))}"
        )
        return {
            "text": _content_text(message.get("content")).strip(),
            "tool_calls": tool_calls,
            "usage": {
                "input_tokens": usage.get("prompt_tokens") or usage.get("input_tokens"),
                "output_tokens": usage.get("completion_tokens") or usage.get("output_tokens"),
                "total_tokens": usage.get("total_tokens"),
            },
        }

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
