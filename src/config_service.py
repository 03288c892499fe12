from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os
import yaml


class ConfigError(RuntimeError):
    """Raised at startup when required configuration is missing or unusable."""


# Environment variables the service cannot start without
REQUIRED_SECRETS = (
    "DISCORD_BOT_TOKEN",
    "DISCORD_PUBLIC_KEY",
    "DISCORD_APPLICATION_ID",
    "OWNER_USER_ID",
    "OPENROUTER_API_KEY",
)

DEFAULT_MODEL = "meta-llama/llama-3.2-3b-instruct:free"


@dataclass
class Config:
    raw: dict


@dataclass(frozen=True)
class Secrets:
    bot_token: str
    public_key: str
    application_id: str
    owner_user_id: str
    openrouter_api_key: str
    groq_api_key: str | None = None
    tavily_api_key: str | None = None


class ConfigService:
    """YAML settings plus environment secrets.

    A missing YAML file is treated as empty so the defaults below apply; the
    file is re-read whenever its mtime changes.
    """

    def __init__(self, path: str | Path = "config.yaml", env: dict[str, str] | None = None):
        self._path = Path(path)
        self._env = env
        self._cfg = Config(raw=self._read())
        try:
            self._mtime_ns = self._path.stat().st_mtime_ns
        except OSError:
            self._mtime_ns = 0

    @classmethod
    def from_dict(cls, raw: dict, env: dict[str, str] | None = None) -> "ConfigService":
        svc = cls.__new__(cls)
        svc._path = Path("<memory>")
        svc._env = env
        svc._cfg = Config(raw=dict(raw or {}))
        svc._mtime_ns = 0
        return svc

    def _read(self) -> dict:
        if not self._path.exists():
            return {}
        with self._path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"{self._path} must contain a mapping at the top level")
        return data

    def _maybe_reload(self) -> None:
        try:
            m = self._path.stat().st_mtime_ns
        except OSError:
            return
        if m != self._mtime_ns:
            try:
                self._cfg = Config(raw=self._read())
                self._mtime_ns = m
            except (OSError, yaml.YAMLError, ConfigError):
                # Keep serving the last good config
                pass

    def _section(self, name: str) -> dict:
        self._maybe_reload()
        v = self._cfg.raw.get(name)
        return v if isinstance(v, dict) else {}

    def _getenv(self, name: str) -> str | None:
        v = self._env.get(name) if self._env is not None else os.getenv(name)
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    # ---------- Secrets ----------
    def missing_secrets(self) -> list[str]:
        return [name for name in REQUIRED_SECRETS if not self._getenv(name)]

    def require_secrets(self) -> Secrets:
        missing = self.missing_secrets()
        if missing:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")
        return self.secrets()

    def secrets(self) -> Secrets:
        return Secrets(
            bot_token=self._getenv("DISCORD_BOT_TOKEN") or "",
            public_key=self._getenv("DISCORD_PUBLIC_KEY") or "",
            application_id=self._getenv("DISCORD_APPLICATION_ID") or "",
            owner_user_id=self._getenv("OWNER_USER_ID") or "",
            openrouter_api_key=self._getenv("OPENROUTER_API_KEY") or "",
            groq_api_key=self._getenv("GROQ_API_KEY"),
            tavily_api_key=self._getenv("TAVILY_API_KEY"),
        )

    # ---------- Model ----------
    def model(self) -> dict:
        return self._section("model")

    def strategy(self) -> str:
        return str(self.model().get("strategy", "direct")).strip().lower()

    def default_model(self) -> str:
        v = self.model().get("default")
        return str(v).strip() if isinstance(v, str) and v.strip() else DEFAULT_MODEL

    def temperature(self) -> float | None:
        v = self.model().get("temperature", 0.7)
        try:
            return float(v) if v is not None else None
        except (TypeError, ValueError):
            return 0.7

    def max_tokens(self) -> int | None:
        v = self.model().get("max_tokens", 1024)
        try:
            return int(v) if v is not None else None
        except (TypeError, ValueError):
            return 1024

    def openrouter(self) -> dict:
        v = self.model().get("openrouter")
        return v if isinstance(v, dict) else {}

    def groq(self) -> dict:
        v = self.model().get("groq")
        return v if isinstance(v, dict) else {}

    def agent_max_iterations(self) -> int:
        agent = self.model().get("agent") or {}
        try:
            return max(1, int(agent.get("max_iterations", 5)))
        except (TypeError, ValueError):
            return 5

    def agent_max_results(self) -> int:
        agent = self.model().get("agent") or {}
        try:
            return max(1, min(5, int(agent.get("max_results", 5))))
        except (TypeError, ValueError):
            return 5

    # ---------- Collaborators ----------
    def settings_store_path(self) -> str:
        return str(self._section("settings_store").get("path", "data/settings.json"))

    def memory_enabled(self) -> bool:
        return bool(self._section("memory").get("enabled", False))

    def memory_max_turns(self) -> int:
        try:
            return max(1, int(self._section("memory").get("max_turns", 10)))
        except (TypeError, ValueError):
            return 10

    def persona_path(self) -> str:
        return str(self._section("persona").get("path", "personas/avalon.md"))

    # ---------- Discord delivery ----------
    def discord_api_base(self) -> str:
        return str(self._section("discord").get("api_base", "https://discord.com/api/v10")).rstrip("/")

    def followup_delay_seconds(self) -> float:
        try:
            return max(0.0, float(self._section("followup").get("delay_seconds", 1.0)))
        except (TypeError, ValueError):
            return 1.0

    def followup_chunk_size(self) -> int:
        # Discord caps message content at 2000 chars; keep headroom
        try:
            return max(1, min(2000, int(self._section("followup").get("chunk_size", 1990))))
        except (TypeError, ValueError):
            return 1990

    def first_chunk_mode(self) -> str:
        v = str(self._section("followup").get("first_chunk_mode", "followup")).lower()
        return "edit" if v == "edit" else "followup"

    # ---------- HTTP ----------
    def http_host(self) -> str:
        return str(self._section("http").get("host", "0.0.0.0"))

    def http_port(self) -> int:
        try:
            return int(self._section("http").get("port", 8787))
        except (TypeError, ValueError):
            return 8787

    # ---------- Logging ----------
    def log_level(self) -> str:
        self._maybe_reload()
        return str(self._cfg.raw.get("LOG_LEVEL", "INFO")).upper()

    def lib_log_level(self) -> str | None:
        v = self._cfg.raw.get("LIB_LOG_LEVEL")
        return str(v).upper() if v else None

    def log_console(self) -> bool:
        """Mirror console logs to logs/log.log."""
        return bool(self._cfg.raw.get("LOG_CONSOLE", False))

    def log_errors(self) -> bool:
        """Always write ERROR-and-above to logs/errors.log, independent of LOG_LEVEL."""
        return bool(self._cfg.raw.get("LOG_ERRORS", False))

    def log_timezone(self) -> str | None:
        v = self._cfg.raw.get("LOG_TZ")
        return str(v) if v else None
