"""FastAPI application wiring: config -> bridge components -> routes."""

import asyncio
import os
import signal
import sys
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI

from ghbridge.adapters.discord.bot import BridgeBot
from ghbridge.adapters.discord.notification import DiscordEgressAdapter
from ghbridge.adapters.web.github_routes import github_router
from ghbridge.config import AppConfig
from ghbridge.domain.bridge import Bridge
from ghbridge.domain.classifier import EventClassifier
from ghbridge.domain.dispatch import DispatchQueue
from ghbridge.domain.mentions import MentionDirectory
from ghbridge.domain.status import StatusRefresher
from ghbridge.infrastructure.system_status import SystemStatusCollector, status_composer
from ghbridge.ports.outbound import EgressPort, FailureSink


def _log(msg: str):
    print(msg, file=sys.stderr)


def _request_shutdown(exc: BaseException):
    """Ask uvicorn to stop the same way Ctrl+C / SIGTERM would."""
    os.kill(os.getpid(), signal.SIGTERM)


def create_app(
    config: AppConfig,
    egress: Optional[EgressPort] = None,
    bot: Optional[BridgeBot] = None,
    sink: Optional[FailureSink] = None,
    on_fatal: Callable[[BaseException], None] = _request_shutdown,
) -> FastAPI:
    """Build the app. Without an explicit egress, a Discord client is created.

    ``on_fatal`` is called when the Discord connection dies after startup.
    """
    collector = SystemStatusCollector(config.status.disk_paths)

    if egress is None:
        if bot is None:
            bot = BridgeBot(collector=collector, max_ratelimit_timeout=config.discord.max_ratelimit_timeout)
        egress = DiscordEgressAdapter(bot)

    dispatcher = DispatchQueue.from_config(egress, config.dispatch, sink=sink)
    dev_role = f"<@&{config.discord.dev_role_id}>" if config.discord.dev_role_id else None
    classifier = EventClassifier(config.channels, MentionDirectory(config.mentions), dev_role_mention=dev_role)
    bridge = Bridge(classifier, dispatcher)

    compose = status_composer(collector, dispatcher.stats)
    refresher = StatusRefresher(
        dispatcher,
        channel_id=config.status.channel_id,
        interval=config.status.interval,
        compose=compose,
        sweep_on_start=config.status.sweep_on_start,
    )
    if bot is not None:
        bot.wire(refresher, compose)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        bot_task: Optional[asyncio.Task] = None
        if bot is not None and config.discord.token:
            # A bad token or unreachable Discord aborts startup
            try:
                await bot.login(config.discord.token)
            except Exception as e:
                _log(f"[bot] Discord login failed: {e}")
                await bot.close()
                raise

            def _on_disconnect(task: asyncio.Task):
                if task.cancelled() or task.exception() is None:
                    return
                _log(f"[bot] Discord connection lost: {task.exception()}, shutting down")
                on_fatal(task.exception())

            bot_task = asyncio.create_task(bot.connect(), name="discord-connect")
            bot_task.add_done_callback(_on_disconnect)
        elif bot is None:
            # Custom egress (no Discord client): run the status loop directly
            refresher.start()
        else:
            _log("[bot] DISCORD_TOKEN not set, notifications will not be delivered")
        _log("Ready!")
        try:
            yield
        finally:
            await refresher.stop()
            await dispatcher.close(config.dispatch.shutdown_grace)
            if bot_task:
                bot_task.remove_done_callback(_on_disconnect)
                bot_task.cancel()
            if bot is not None and not bot.is_closed():
                await bot.close()

    app = FastAPI(title="GitHub Discord Bridge", lifespan=lifespan)
    app.state.config = config
    app.state.bridge = bridge
    app.state.refresher = refresher
    app.state.bot = bot
    app.include_router(github_router)
    return app
