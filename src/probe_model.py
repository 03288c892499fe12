"""Send one prompt to OpenRouter and print what comes back.

Handy for checking whether a free-tier model is rate limited before pointing
/setmodel at it.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Optional

from dotenv import load_dotenv

from .config_service import ConfigService
from .llm.errors import LLMError, describe_error
from .llm.openrouter_client import OPENROUTER_BASE_URL, OpenRouterClient
from .settings_store import JsonFileKeyValueStore, SettingsService

DEFAULT_PROMPT = "What is the meaning of life?"


async def probe(config: ConfigService, model: Optional[str], prompt: str) -> int:
    if not model:
        settings = SettingsService(JsonFileKeyValueStore(config.settings_store_path()), config.default_model())
        model = await settings.get_current_model()
    orc = config.openrouter()
    try:
        client = OpenRouterClient(
            api_key=config.secrets().openrouter_api_key,
            base_url=str(orc.get("base_url", OPENROUTER_BASE_URL)),
            default_model=model,
        )
    except LLMError as e:
        print(f"Error: {describe_error(e)}", file=sys.stderr)
        return 2
    try:
        result = await client.generate_chat([{"role": "user", "content": prompt}], model=model)
    except LLMError as e:
        print(f"Error: {describe_error(e)}", file=sys.stderr)
        return 1
    finally:
        await client.aclose()
    print(json.dumps({"model": model, "content": result.get("text"), "usage": result.get("usage")}, indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Probe an OpenRouter model with a single prompt")
    parser.add_argument("--model", help="Model id (default: current setting)")
    parser.add_argument("--prompt", default=DEFAULT_PROMPT)
    args = parser.parse_args(argv)
    return asyncio.run(probe(ConfigService("config.yaml"), args.model, args.prompt))


if __name__ == "__main__":
    sys.exit(main())
