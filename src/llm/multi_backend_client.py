from __future__ import annotations

from typing import Optional

from .base import LLMClient
from .errors import LLMError
from ..logger_factory import get_logger
from ..utils.logfmt import fmt


class ProviderChainError(LLMError):
    """Every provider in the chain failed; `failures` keeps (provider, error) in call order."""

    def __init__(self, failures: list[tuple[str, Exception]]):
        self.failures = failures
        names = ", ".join(n for n, _ in failures) or "none"
        super().__init__(f"All LLM providers failed: {names}")


class MultiBackendClient(LLMClient):
    """Tries backends in order until one succeeds.

    The chain is the primary provider plus at most one fallback; each is
    called exactly once.
    """

    name = "multi"

    def __init__(self, providers: list[LLMClient]):
        self.providers = [p for p in providers if p is not None]
        self.log = get_logger("LLMSelect")

    @property
    def has_fallback(self) -> bool:
        return len(self.providers) > 1

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
        if not self.providers:
            raise ProviderChainError([])
        failures: list[tuple[str, Exception]] = []
        cf = context_fields or {}
        for idx, p in enumerate(self.providers):
            try:
                result = await p.generate_chat(
                    messages,
                    model=model,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    tools=tools,
                    context_fields=context_fields,
                )
            except Exception as e:
                failures.append((p.name, e))
                self.log.error(
                    f"llm-provider-failed {fmt('provider', p.name)} {fmt('index', idx)} "
                    f"{fmt('err', e)} {fmt('correlation', cf.get('correlation'))}"
                )
                continue
            if failures:
                self.log.info(f"llm-fallback-ok {fmt('provider', p.name)} {fmt('correlation', cf.get('correlation'))}")
            return result
        raise ProviderChainError(failures)

    async def aclose(self) -> None:
        for p in self.providers:
            await p.aclose()
