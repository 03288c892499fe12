from __future__ import annotations

from typing import Optional


class LLMError(Exception):
    """Base error for LLM-related failures."""


class ProviderError(LLMError):
    """A provider call failed (transport, HTTP status, or unusable body)."""

    def __init__(self, provider: str, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status = status


class CompletionInitError(LLMError):
    """A completion client could not be built for the current settings."""


class AgentError(LLMError):
    pass


class AgentIterationLimitError(AgentError):
    pass


def describe_error(error: BaseException) -> str:
    """One-line, user-presentable summary of an exception."""
    text = str(error).split("\n")[0].strip()
    if not text:
        return type(error).__name__
    return text[:300]
