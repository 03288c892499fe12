from __future__ import annotations

from typing import Any, Optional

import httpx

from .logger_factory import get_logger
from .utils.logfmt import fmt

DEFAULT_API_BASE = "https://discord.com/api/v10"


class DiscordWebhookClient:
    """Followup delivery for deferred interactions.

    Non-2xx answers are logged and returned, not raised; callers decide
    whether a failed delivery matters.
    """

    def __init__(
        self,
        application_id: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 15.0,
    ):
        self.application_id = application_id
        self.api_base = api_base.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None
        self.log = get_logger("DiscordWebhook")

    def followup_url(self, token: str) -> str:
        return f"{self.api_base}/webhooks/{self.application_id}/{token}"

    def original_url(self, token: str) -> str:
        return f"{self.followup_url(token)}/messages/@original"

    async def _send(self, method: str, url: str, payload: Any, headers: Optional[dict] = None) -> httpx.Response:
        r = await self._client.request(method, url, json=payload, headers=headers)
        if r.is_error:
            body = r.text[:500] if r.text else "<no body>"
            self.log.error(f"discord-api-error {fmt('method', method)} {fmt('status', r.status_code)} {fmt('body', body)}")
        return r

    async def send_followup(self, token: str, payload: dict) -> httpx.Response:
        return await self._send("POST", self.followup_url(token), payload)

    async def edit_original(self, token: str, payload: dict) -> httpx.Response:
        return await self._send("PATCH", self.original_url(token), payload)

    async def register_commands(self, bot_token: str, commands: list[dict]) -> httpx.Response:
        """Overwrite the application's global command set."""
        url = f"{self.api_base}/applications/{self.application_id}/commands"
        return await self._send("PUT", url, commands, headers={"Authorization": f"Bot {bot_token}"})

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
