from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol

from .chat_completion import CompletionClient
from .commands import CHAT_COMMAND, SETMODEL_COMMAND, ChatOptions, SetModelOptions, flatten_options, validate_options
from .discord_webhook import DiscordWebhookClient
from .interaction_models import Interaction
from .interaction_responses import (
    DEFAULT_CHUNK_SIZE,
    deferred_ack,
    ephemeral_message,
    error_body,
    followup_message,
    pong,
    split_into_chunks,
)
from .logger_factory import get_logger
from .settings_store import SettingsService
from .utils.correlation import make_correlation_id
from .utils.logfmt import fmt, preview

NO_OPTIONS = "No options provided."
NOT_PERMITTED = "You do not have permission to use this command."
INIT_FAILED = "Failed to initialize the AI agent. Please contact the owner."
UNEXPECTED_ERROR = "An unexpected error occurred while processing your request."
SETTING_WRITE_FAILED = "Failed to update the model setting."
UNKNOWN_TYPE = "Unknown Type"


class CompletionFactory(Protocol):
    async def create(self) -> CompletionClient:
        ...


@dataclass
class RouteResult:
    """Synchronous answer plus optional work to run after it is sent."""

    body: dict
    status_code: int = 200
    background: Optional[Callable[[], Awaitable[None]]] = None


def invalid_input(errors: list[str]) -> str:
    return f"Invalid input: {', '.join(errors)}"


class InteractionRouter:
    def __init__(
        self,
        *,
        owner_user_id: str,
        settings: SettingsService,
        webhook: DiscordWebhookClient,
        completions: CompletionFactory,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        followup_delay: float = 1.0,
        first_chunk_mode: str = "followup",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.owner_user_id = owner_user_id
        self.settings = settings
        self.webhook = webhook
        self.completions = completions
        self.chunk_size = chunk_size
        self.followup_delay = followup_delay
        self.first_chunk_mode = first_chunk_mode
        self._sleep = sleep
        self.log = get_logger("InteractionRouter")

    async def dispatch(self, interaction: Interaction) -> RouteResult:
        if interaction.is_ping:
            return RouteResult(pong())
        if interaction.is_chat_input:
            name = interaction.command_name
            if name == CHAT_COMMAND.name:
                return self._chat(interaction)
            if name == SETMODEL_COMMAND.name:
                return await self._setmodel(interaction)
        self.log.error(
            f"unknown-interaction {fmt('type', interaction.type)} {fmt('command', interaction.command_name)}"
        )
        return RouteResult(error_body(UNKNOWN_TYPE))

    # ---------- /chat ----------
    def _chat(self, interaction: Interaction) -> RouteResult:
        options = interaction.raw_options()
        if options is None:
            return RouteResult(ephemeral_message(NO_OPTIONS))
        correlation = make_correlation_id(interaction.id, CHAT_COMMAND.name)

        async def run() -> None:
            try:
                await self._chat_followups(interaction, options, correlation)
            except Exception as e:
                self.log.exception(f"chat-task-error {fmt('correlation', correlation)} {fmt('err', e)}")
                await self._notify_failure(interaction.token, correlation)

        return RouteResult(deferred_ack(), background=run)

    async def _chat_followups(self, interaction: Interaction, options: list[dict], correlation: str) -> None:
        token = interaction.token
        user_id = interaction.caller_id
        parsed, errors = validate_options(ChatOptions, flatten_options(options))
        if parsed is None:
            self.log.info(f"chat-invalid {fmt('user', user_id)} {fmt('errors', '; '.join(errors))} {fmt('correlation', correlation)}")
            await self.webhook.send_followup(token, followup_message(invalid_input(errors), ephemeral=True))
            return

        self.log.info(f"chat-start {fmt('user', user_id)} {fmt('query', preview(parsed.query))} {fmt('correlation', correlation)}")
        try:
            client = await self.completions.create()
        except Exception as e:
            self.log.error(f"chat-init-failed {fmt('correlation', correlation)} {fmt('err', e)}")
            await self.webhook.send_followup(token, followup_message(INIT_FAILED))
            return

        try:
            reply = await client.complete(parsed.query, user_id=user_id, correlation=correlation)
        finally:
            closer = getattr(client, "aclose", None)
            if closer is not None:
                await closer()

        chunks = split_into_chunks(reply, self.chunk_size)
        await self._deliver_first(token, chunks[0])
        for chunk in chunks[1:]:
            # Webhook followups are rate limited per token
            await self._sleep(self.followup_delay)
            await self.webhook.send_followup(token, followup_message(chunk))
        self.log.info(f"chat-delivered {fmt('chunks', len(chunks))} {fmt('chars', len(reply))} {fmt('correlation', correlation)}")

    async def _deliver_first(self, token: str, content: str) -> None:
        if self.first_chunk_mode == "edit":
            await self.webhook.edit_original(token, followup_message(content))
        else:
            await self.webhook.send_followup(token, followup_message(content))

    async def _notify_failure(self, token: str, correlation: str) -> None:
        try:
            await self.webhook.send_followup(token, followup_message(UNEXPECTED_ERROR, ephemeral=True))
        except Exception as e:
            self.log.error(f"chat-error-followup-failed {fmt('correlation', correlation)} {fmt('err', e)}")

    # ---------- /setmodel ----------
    async def _setmodel(self, interaction: Interaction) -> RouteResult:
        user_id = interaction.caller_id
        correlation = make_correlation_id(interaction.id, SETMODEL_COMMAND.name)
        if user_id is None or user_id != self.owner_user_id:
            self.log.warning(f"setmodel-denied {fmt('user', user_id)} {fmt('correlation', correlation)}")
            return RouteResult(ephemeral_message(NOT_PERMITTED))

        options = interaction.raw_options()
        if options is None:
            return RouteResult(ephemeral_message(NO_OPTIONS))
        parsed, errors = validate_options(SetModelOptions, flatten_options(options))
        if parsed is None:
            return RouteResult(ephemeral_message(invalid_input(errors)))

        self.log.info(f"setmodel {fmt('user', user_id)} {fmt('model', parsed.model_name)} {fmt('correlation', correlation)}")
        if not await self.settings.set_current_model(parsed.model_name):
            return RouteResult(ephemeral_message(SETTING_WRITE_FAILED))
        # Echo what the store holds, not what was sent
        current = await self.settings.get_current_model()
        return RouteResult(ephemeral_message(f"Model set to: `{current}`."))
