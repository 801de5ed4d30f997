"""Entry point: ``python -m ghbridge``."""

import sys

import uvicorn

from ghbridge.app import create_app
from ghbridge.config import AppConfig, ConfigError


def main() -> int:
    try:
        config = AppConfig.from_env()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    if not config.discord.token:
        print("Configuration error: DISCORD_TOKEN must be set", file=sys.stderr)
        return 1
    uvicorn.run(create_app(config), host=config.host, port=config.port, log_level="info")
    return 0


if __name__ == "__main__":
    sys.exit(main())
