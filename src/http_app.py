from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.background import BackgroundTask

from .completion_factory import CompletionClientFactory
from .config_service import ConfigService
from .conversation_memory import ConversationMemory
from .discord_webhook import DiscordWebhookClient
from .interaction_responses import error_body, json_response
from .interaction_router import CompletionFactory, InteractionRouter
from .logger_factory import get_logger
from .persona_service import PersonaService
from .prompt_template_engine import PromptTemplateEngine
from .settings_store import JsonFileKeyValueStore, SettingsService
from .signature_verifier import SIGNATURE_HEADER, TIMESTAMP_HEADER, read_verified_interaction
from .utils.logfmt import fmt

BAD_SIGNATURE = "Bad request signature."


@dataclass
class Services:
    settings: SettingsService
    webhook: DiscordWebhookClient
    completions: CompletionFactory
    memory: Optional[ConversationMemory] = None
    http: Optional[httpx.AsyncClient] = None


def build_services(cfg: ConfigService) -> Services:
    secrets = cfg.secrets()
    http = httpx.AsyncClient(timeout=60.0)
    settings = SettingsService(JsonFileKeyValueStore(cfg.settings_store_path()), cfg.default_model())
    memory = ConversationMemory(cfg.memory_max_turns()) if cfg.memory_enabled() else None
    templates = PromptTemplateEngine(PersonaService(cfg.persona_path()))
    webhook = DiscordWebhookClient(secrets.application_id, client=http, api_base=cfg.discord_api_base())
    completions = CompletionClientFactory(cfg, settings, templates, http=http, memory=memory)
    return Services(settings=settings, webhook=webhook, completions=completions, memory=memory, http=http)


def create_app(cfg: ConfigService, *, services: Optional[Services] = None) -> FastAPI:
    log = get_logger("http_app")
    svc = services or build_services(cfg)
    secrets = cfg.secrets()
    router = InteractionRouter(
        owner_user_id=secrets.owner_user_id,
        settings=svc.settings,
        webhook=svc.webhook,
        completions=svc.completions,
        chunk_size=cfg.followup_chunk_size(),
        followup_delay=cfg.followup_delay_seconds(),
        first_chunk_mode=cfg.first_chunk_mode(),
    )

    app = FastAPI(title="Avalon", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.services = svc
    app.state.router = router

    @app.on_event("shutdown")
    async def _close_http():
        if svc.http is not None:
            await svc.http.aclose()

    @app.get("/")
    async def hello():
        return PlainTextResponse(f"👋 {secrets.application_id}")

    @app.post("/")
    async def interactions(request: Request):
        # Verify against the exact bytes received; never re-serialize first
        body = await request.body()
        interaction = read_verified_interaction(
            body,
            request.headers.get(SIGNATURE_HEADER),
            request.headers.get(TIMESTAMP_HEADER),
            secrets.public_key,
        )
        if interaction is None:
            log.warning(f"interaction-rejected {fmt('bytes', len(body))}")
            return PlainTextResponse(BAD_SIGNATURE, status_code=401)

        result = await router.dispatch(interaction)
        background = BackgroundTask(result.background) if result.background is not None else None
        return json_response(result.body, status_code=result.status_code, background=background)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        log.exception(f"http-unhandled {fmt('path', request.url.path)} {fmt('err', exc)}")
        return json_response(error_body("Internal Server Error"), status_code=500)

    return app
