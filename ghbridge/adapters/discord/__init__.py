"""Discord adapters."""

from ghbridge.adapters.discord.bot import BridgeBot
from ghbridge.adapters.discord.notification import DiscordEgressAdapter, translate_error

__all__ = ["BridgeBot", "DiscordEgressAdapter", "translate_error"]
