from __future__ import annotations

from typing import Optional

import httpx

from .agent_executor import ToolAgent
from .chat_completion import CompletionClient, DirectChatCompletion
from .config_service import ConfigService
from .conversation_memory import ConversationMemory
from .llm.errors import CompletionInitError
from .llm.groq_client import GROQ_BASE_URL, GROQ_DEFAULT_MODEL, GroqClient
from .llm.multi_backend_client import MultiBackendClient
from .llm.openrouter_client import OPENROUTER_BASE_URL, OpenRouterClient
from .llm.web_search import WebSearchTool
from .logger_factory import get_logger
from .prompt_template_engine import PromptTemplateEngine
from .settings_store import SettingsService
from .utils.logfmt import fmt

STRATEGIES = ("direct", "agent")


class CompletionClientFactory:
    """Builds a completion client for the model currently in the settings store.

    The model is read on every create() so a /setmodel write applies to the
    very next /chat.
    """

    def __init__(
        self,
        config: ConfigService,
        settings: SettingsService,
        templates: PromptTemplateEngine,
        *,
        http: Optional[httpx.AsyncClient] = None,
        memory: Optional[ConversationMemory] = None,
    ):
        self.config = config
        self.settings = settings
        self.templates = templates
        self.http = http
        self.memory = memory
        self.log = get_logger("CompletionFactory")

    def _openrouter(self, model: str) -> OpenRouterClient:
        orc = self.config.openrouter()
        return OpenRouterClient(
            api_key=self.config.secrets().openrouter_api_key,
            base_url=str(orc.get("base_url", OPENROUTER_BASE_URL)),
            http_referer=orc.get("http_referer", "https://github.com/yehezkieldio/avalon"),
            x_title=orc.get("x_title", "Avalon"),
            timeout=float(orc.get("timeout", 60.0)),
            client=self.http,
            default_model=model,
        )

    def _groq(self) -> Optional[GroqClient]:
        key = self.config.secrets().groq_api_key
        if not key:
            return None
        gc = self.config.groq()
        return GroqClient(
            api_key=key,
            base_url=str(gc.get("base_url", GROQ_BASE_URL)),
            model=str(gc.get("model", GROQ_DEFAULT_MODEL)),
            timeout=float(gc.get("timeout", 60.0)),
            client=self.http,
        )

    async def create(self) -> CompletionClient:
        strategy = self.config.strategy()
        if strategy not in STRATEGIES:
            raise CompletionInitError(f"Unknown completion strategy {strategy!r}")
        model = await self.settings.get_current_model()
        try:
            primary = self._openrouter(model)
            if strategy == "agent":
                search = WebSearchTool(
                    api_key=self.config.secrets().tavily_api_key,
                    max_results=self.config.agent_max_results(),
                )
                client: CompletionClient = ToolAgent(
                    primary,
                    self.templates,
                    search,
                    model=model,
                    max_iterations=self.config.agent_max_iterations(),
                    max_tokens=self.config.max_tokens(),
                    temperature=self.config.temperature(),
                )
            else:
                fallback = self._groq()
                chain = MultiBackendClient([primary, fallback])
                client = DirectChatCompletion(
                    chain,
                    self.templates,
                    model=model,
                    memory=self.memory,
                    max_tokens=self.config.max_tokens(),
                    temperature=self.config.temperature(),
                    has_fallback=chain.has_fallback,
                )
        except (TypeError, ValueError) as e:
            raise CompletionInitError(f"Invalid model configuration: {e}") from e
        self.log.info(f"completion-client {fmt('strategy', strategy)} {fmt('model', model)}")
        return client
