from __future__ import annotations

from typing import Optional, Protocol

from .conversation_memory import ConversationMemory
from .llm.base import LLMClient
from .llm.errors import describe_error
from .llm.multi_backend_client import ProviderChainError
from .logger_factory import get_logger
from .prompt_template_engine import PromptTemplateEngine
from .utils.logfmt import fmt, preview

EMPTY_REPLY = "Sorry, I received an empty response from the model."


class CompletionClient(Protocol):
    model: str

    async def complete(self, query: str, user_id: Optional[str] = None, correlation: Optional[str] = None) -> str:
        ...


def provider_failure_message(error: ProviderChainError, has_fallback: bool) -> str:
    failures = error.failures
    primary = describe_error(failures[0][1]) if failures else "unknown error"
    if not has_fallback or len(failures) < 2:
        return (
            "An error occurred with the primary AI model, and fallback is not possible "
            f"due to missing configuration. Details: {primary}"
        )
    fallback = describe_error(failures[1][1])
    return (
        "An error occurred with the primary AI model, and the fallback attempt also failed. "
        f"Initial Error: {primary}. Fallback Error: {fallback}."
    )


class DirectChatCompletion:
    """Persona prompt + optional history + query, sent to the provider chain once.

    Provider failures come back as a readable string so the user always gets
    a reply; nothing here raises for a failed model call.
    """

    def __init__(
        self,
        llm: LLMClient,
        templates: PromptTemplateEngine,
        *,
        model: str,
        memory: Optional[ConversationMemory] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        has_fallback: bool = False,
    ):
        self.llm = llm
        self.templates = templates
        self.model = model
        self.memory = memory
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.has_fallback = has_fallback
        self.log = get_logger("DirectChat")

    async def complete(self, query: str, user_id: Optional[str] = None, correlation: Optional[str] = None) -> str:
        history = self.memory.history(user_id) if self.memory is not None else None
        messages = self.templates.build_messages(query, model=self.model, history=history)
        self.log.info(
            f"chat-run {fmt('model', self.model)} {fmt('user', user_id)} "
            f"{fmt('history', len(history or []))} {fmt('query', preview(query))} {fmt('correlation', correlation)}"
        )
        try:
            result = await self.llm.generate_chat(
                messages,
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                context_fields={"user": user_id, "correlation": correlation},
            )
        except ProviderChainError as e:
            self.log.error(f"chat-failed {fmt('correlation', correlation)} {fmt('err', e)}")
            return provider_failure_message(e, self.has_fallback)
        except Exception as e:
            # A bare provider (no chain) failing is reported the same way
            self.log.error(f"chat-failed {fmt('correlation', correlation)} {fmt('err', e)}")
            return provider_failure_message(ProviderChainError([(self.llm.name, e)]), False)

        text = result.get("text") or ""
        if not text:
            return EMPTY_REPLY
        if self.memory is not None:
            self.memory.record_exchange(user_id, query, text)
        return text

    async def aclose(self) -> None:
        await self.llm.aclose()
