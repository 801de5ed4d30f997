"""Discord client for the bridge: status loop owner and slash commands."""

import sys
from typing import Callable, Optional

import discord
from discord import app_commands

from ghbridge.domain.status import StatusRefresher
from ghbridge.infrastructure.system_status import SystemStatusCollector, format_uptime


def _log(msg: str):
    print(msg, file=sys.stderr)


HEALTH_REPLY = "✅ Bot is alive."


def uptime_reply(collector: SystemStatusCollector) -> str:
    seconds = collector.uptime()
    if seconds is None:
        return "Uptime unavailable on this host."
    return f"`up {format_uptime(seconds)}`"


class BridgeBot(discord.Client):
    """discord.Client that starts the status refresher once connected.

    Slash commands:
    - /status — one-off system status snapshot
    - /health — responsiveness check
    - /uptime — host uptime
    """

    def __init__(self, collector: Optional[SystemStatusCollector] = None, **discord_kwargs):
        super().__init__(intents=discord.Intents.default(), **discord_kwargs)
        self.tree = app_commands.CommandTree(self)
        self._collector = collector or SystemStatusCollector()
        self._refresher: Optional[StatusRefresher] = None
        self._compose_status: Optional[Callable[[], str]] = None
        self._register_commands()

    def wire(self, refresher: Optional[StatusRefresher], compose_status: Callable[[], str]):
        """Attach bridge components built after the client (they need its egress)."""
        self._refresher = refresher
        self._compose_status = compose_status

    def status_reply(self) -> str:
        if not self._compose_status:
            return "Status is not available yet."
        return self._compose_status()

    def _register_commands(self):
        @self.tree.command(name="status", description="Show system status (RAM, CPU, disks)")
        async def status(interaction: discord.Interaction):
            await interaction.response.send_message(self.status_reply())

        @self.tree.command(name="health", description="Check that the bot is responsive")
        async def health(interaction: discord.Interaction):
            await interaction.response.send_message(HEALTH_REPLY)

        @self.tree.command(name="uptime", description="Show host uptime")
        async def uptime(interaction: discord.Interaction):
            await interaction.response.send_message(uptime_reply(self._collector))

    async def setup_hook(self):
        try:
            synced = await self.tree.sync()
            _log(f"[bot] registered {len(synced)} slash command(s)")
        except discord.HTTPException as e:
            _log(f"[bot] slash command sync failed: {e}")

    async def on_ready(self):
        _log(f"[bot] logged in as {self.user}")
        if self._refresher and not self._refresher.running:
            self._refresher.start()

    async def close(self):
        if self._refresher:
            await self._refresher.stop()
        await super().close()
