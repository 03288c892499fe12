import asyncio
import os
import sys

import uvicorn
from dotenv import load_dotenv

from .config_service import ConfigError, ConfigService
from .http_app import create_app
from .logger_factory import configure_logging, get_logger
from .utils.logfmt import fmt


def _seed(target: str, example: str) -> None:
    if os.path.exists(target) or not os.path.exists(example):
        return
    with open(example, "r", encoding="utf-8") as s, open(target, "w", encoding="utf-8") as d:
        d.write(s.read())


async def main() -> None:
    # Ensure env + config
    _seed(".env", ".env.example")
    load_dotenv()
    _seed("config.yaml", "config.example.yaml")

    config = ConfigService("config.yaml")
    configure_logging(
        level=config.log_level(),
        tz=config.log_timezone(),
        lib_log_level=config.lib_log_level(),
        console_to_file=config.log_console(),
        error_file=config.log_errors(),
    )
    logger = get_logger("bot_app")

    try:
        secrets = config.require_secrets()
    except ConfigError as e:
        logger.critical(str(e))
        sys.exit(1)

    app = create_app(config)
    host, port = config.http_host(), config.http_port()
    logger.info(
        f"interactions-endpoint {fmt('host', host)} {fmt('port', port)} "
        f"{fmt('application', secrets.application_id)} {fmt('strategy', config.strategy())}"
    )
    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="info"))
    await server.serve()


if __name__ == "__main__":
    asyncio.run(main())
