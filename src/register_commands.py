"""Overwrite the application's global slash commands with /chat and /setmodel."""
from __future__ import annotations

import argparse
import asyncio
import json
import sys

from dotenv import load_dotenv

from .commands import payload
from .config_service import ConfigService
from .discord_webhook import DiscordWebhookClient
from .logger_factory import get_logger


async def register(bot_token: str, application_id: str, api_base: str) -> int:
    log = get_logger("register_commands")
    commands = payload()
    log.info("Registering commands: %s", json.dumps(commands, indent=2))
    client = DiscordWebhookClient(application_id, api_base=api_base)
    try:
        r = await client.register_commands(bot_token, commands)
    finally:
        await client.aclose()
    if r.is_error:
        log.error("Error registering commands (status %s)", r.status_code)
        return 1
    log.info("Registered commands successfully!")
    print(json.dumps(r.json(), indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    config = ConfigService("config.yaml")
    secrets = config.secrets()
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--token", default=secrets.bot_token, help="Bot token (default: DISCORD_BOT_TOKEN)")
    parser.add_argument(
        "--application-id",
        default=secrets.application_id,
        help="Application id (default: DISCORD_APPLICATION_ID)",
    )
    args = parser.parse_args(argv)
    if not args.token or not args.application_id:
        parser.error("a bot token and application id are required")
    return asyncio.run(register(args.token, args.application_id, config.discord_api_base()))


if __name__ == "__main__":
    sys.exit(main())
