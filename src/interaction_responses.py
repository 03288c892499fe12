from __future__ import annotations

from typing import Any, Optional

import discord
from fastapi.responses import JSONResponse
from starlette.background import BackgroundTask

EPHEMERAL = discord.MessageFlags(ephemeral=True).value

# Discord rejects message content over 2000 chars
DEFAULT_CHUNK_SIZE = 1990
EMPTY_PLACEHOLDER = "..."


def pong() -> dict:
    return {"type": discord.InteractionResponseType.pong.value}


def deferred_ack() -> dict:
    return {"type": discord.InteractionResponseType.deferred_channel_message.value}


def channel_message(content: str) -> dict:
    return {
        "type": discord.InteractionResponseType.channel_message.value,
        "data": {"content": content},
    }


def ephemeral_message(content: str) -> dict:
    return {
        "type": discord.InteractionResponseType.channel_message.value,
        "data": {"content": content, "flags": EPHEMERAL},
    }


def followup_message(content: str, ephemeral: bool = False) -> dict:
    """Body for a webhook followup (no interaction-response envelope)."""
    body: dict[str, Any] = {"content": content}
    if ephemeral:
        body["flags"] = EPHEMERAL
    return body


def error_body(message: str) -> dict:
    return {"error": message}


def json_response(data: Any, status_code: int = 200, background: Optional[BackgroundTask] = None) -> JSONResponse:
    return JSONResponse(content=data, status_code=status_code, background=background)


def split_into_chunks(text: str, limit: int = DEFAULT_CHUNK_SIZE, placeholder: str = EMPTY_PLACEHOLDER) -> list[str]:
    """Slice text into consecutive pieces of at most `limit` characters.

    Joining the result gives back the input exactly. Empty input yields a
    single placeholder so the user always sees a reply.
    """
    if limit <= 0:
        raise ValueError("limit must be positive")
    if not text:
        return [placeholder]
    return [text[i:i + limit] for i in range(0, len(text), limit)]
