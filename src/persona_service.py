from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import re
import yaml


_FRONTMATTER_RE = re.compile(r"^---\n(.*?)\n---\n(.*)$", re.DOTALL)

DEFAULT_META = {
    "name": "Avalon",
    "maintainer": "Liz",
    "default_model_label": "Llama 3.3 70B Instruct",
}

DEFAULT_BODY = """You are {{ name }}, a precise and efficient assistant operating within Discord.

Purpose:
- Provide accurate, concise, and relevant responses to user queries.
- Ensure clarity and utility in every interaction.

Tone & Behavior:
- Maintain a clear, direct, and respectful tone.
- Match the user's tone: professional for technical queries, casual for informal interactions.
- Keep responses concise and to the point. Expand only when requested.
- Ask clarifying questions when needed. Help refine user requests.

Formatting (Discord-specific):
- Use Discord formatting for emphasis:
    - *Italics* for subtle nuance.
    - **Bold** for key emphasis.
- Avoid large blocks of text. Use spacing and structure for readability.

Rules of Engagement:
- Do not explain your reasoning unless explicitly asked.
- Do not simulate personality or refer to your nature, design, or context.
- Stay on-topic and functional at all times.

System Info:
- You are maintained by {{ maintainer }}.
- Your default model is **{{ default_model_label }}**, but this may change. You are currently running on `{{ model }}`.
{% if remembers_history %}- You remember the last few messages each user sent you.
{% else %}- You do not retain memory across messages. Each input is treated as standalone.
{% endif %}
When asked about yourself:
- You are {{ name }}, maintained by {{ maintainer }}. Your purpose is to assist with precision and efficiency.
"""


@dataclass
class Persona:
    meta: dict
    body: str


class PersonaService:
    """Loads the persona markdown (YAML frontmatter + Jinja body).

    A missing or empty file falls back to the built-in Avalon persona.
    """

    def __init__(self, path: str | None):
        self.path = Path(path) if path else None
        self._mtime_ns = -1
        self._persona = Persona(meta=dict(DEFAULT_META), body=DEFAULT_BODY)
        self._maybe_reload()

    def _load(self) -> Persona:
        text = ""
        if self.path is not None and self.path.exists():
            text = self.path.read_text(encoding="utf-8")
        m = _FRONTMATTER_RE.match(text)
        if m:
            fm, body = m.group(1), m.group(2)
            meta = yaml.safe_load(fm) or {}
        else:
            meta, body = {}, text
        if not isinstance(meta, dict):
            meta = {}
        merged = dict(DEFAULT_META)
        merged.update({k: v for k, v in meta.items() if v is not None})
        return Persona(meta=merged, body=body.strip() or DEFAULT_BODY)

    def _maybe_reload(self) -> None:
        try:
            m = self.path.stat().st_mtime_ns if self.path is not None else 0
        except OSError:
            m = 0
        if m != self._mtime_ns:
            try:
                self._persona = self._load()
                self._mtime_ns = m
            except (OSError, yaml.YAMLError):
                pass

    def meta(self) -> dict:
        self._maybe_reload()
        return self._persona.meta

    def body(self) -> str:
        self._maybe_reload()
        return self._persona.body
