from __future__ import annotations

from jinja2 import BaseLoader, Environment, TemplateError

from .logger_factory import get_logger
from .persona_service import DEFAULT_BODY, PersonaService

AGENT_TOOL_NOTE = (
    "You can call the `web_search` tool when the question needs current or external "
    "information. Search at most a few times, then answer directly and cite the URLs you used."
)


class PromptTemplateEngine:
    def __init__(self, persona_service: PersonaService):
        self.persona = persona_service
        self.env = Environment(loader=BaseLoader(), autoescape=False)
        self.log = get_logger("PromptTemplate")

    def build_system_message(self, *, model: str, remembers_history: bool = False, with_tools: bool = False) -> str:
        meta = self.persona.meta()
        ctx = dict(meta)
        ctx.update({"model": model, "remembers_history": remembers_history})
        try:
            text = self.env.from_string(self.persona.body()).render(**ctx)
        except TemplateError as e:
            # A broken persona file must not take the chat command down
            self.log.error(f"persona-render-error err={e}")
            text = self.env.from_string(DEFAULT_BODY).render(**ctx)
        text = text.strip()
        if with_tools:
            text = f"{text}\n\n{AGENT_TOOL_NOTE}"
        return text

    def build_messages(
        self,
        query: str,
        *,
        model: str,
        history: list[dict] | None = None,
        with_tools: bool = False,
    ) -> list[dict]:
        system = self.build_system_message(model=model, remembers_history=history is not None, with_tools=with_tools)
        messages = [{"role": "system", "content": system}]
        for turn in history or []:
            messages.append({"role": turn["role"], "content": turn["content"]})
        messages.append({"role": "user", "content": query})
        return messages
