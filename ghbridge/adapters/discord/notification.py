"""Discord egress — EgressPort implementation on top of discord.Client.

Translates discord.py / aiohttp failures into the delivery error taxonomy the
dispatch queue understands.
"""

import asyncio
import re
import sys
from typing import List, Sequence

import aiohttp
import discord

from ghbridge.ports.outbound import (
    DeliveryError,
    FatalDeliveryError,
    MessageRef,
    RateLimited,
    TransientDeliveryError,
)

_USER_MENTION_RE = re.compile(r"^<@!?(\d+)>$")
_ROLE_MENTION_RE = re.compile(r"^<@&(\d+)>$")

_DEFAULT_RETRY_AFTER = 1.0


def _log(msg: str):
    print(msg, file=sys.stderr)


def allowed_mentions_for(mentions: Sequence[str]) -> discord.AllowedMentions:
    """Only ping the users/roles the classifier resolved; never @everyone."""
    users: List[discord.Object] = []
    roles: List[discord.Object] = []
    for token in mentions:
        m = _USER_MENTION_RE.match(token.strip())
        if m:
            users.append(discord.Object(id=int(m.group(1))))
            continue
        m = _ROLE_MENTION_RE.match(token.strip())
        if m:
            roles.append(discord.Object(id=int(m.group(1))))
    return discord.AllowedMentions(everyone=False, users=users, roles=roles, replied_user=False)


def _retry_after(exc: discord.HTTPException) -> float:
    try:
        return float(exc.response.headers.get("Retry-After", _DEFAULT_RETRY_AFTER))
    except (AttributeError, TypeError, ValueError):
        return _DEFAULT_RETRY_AFTER


def translate_error(exc: BaseException) -> DeliveryError:
    """Map a discord.py / transport exception onto the delivery taxonomy."""
    if isinstance(exc, DeliveryError):
        return exc
    if isinstance(exc, discord.RateLimited):
        return RateLimited(exc.retry_after)
    if isinstance(exc, discord.HTTPException):
        if exc.status == 429:
            return RateLimited(_retry_after(exc))
        if exc.status >= 500:
            return TransientDeliveryError(f"discord {exc.status}: {exc.text or exc}")
        return FatalDeliveryError(f"discord {exc.status}: {exc.text or exc}")
    if isinstance(exc, (aiohttp.ClientError, asyncio.TimeoutError, discord.ConnectionClosed)):
        return TransientDeliveryError(f"transport error: {exc!r}")
    if isinstance(exc, discord.InvalidData):
        return TransientDeliveryError(f"invalid response: {exc}")
    if isinstance(exc, discord.ClientException):
        return FatalDeliveryError(str(exc))
    return TransientDeliveryError(f"{type(exc).__name__}: {exc}")


_TRANSLATED = (discord.DiscordException, aiohttp.ClientError, asyncio.TimeoutError)


class DiscordEgressAdapter:
    """EgressPort implementation using discord.Client."""

    def __init__(self, client: discord.Client):
        self._client = client

    async def _channel(self, channel_id: int):
        if self._client.is_closed():
            raise TransientDeliveryError("discord client is closed")
        if not self._client.is_ready():
            raise TransientDeliveryError("discord client is not ready yet")
        channel = self._client.get_channel(channel_id)
        if channel is None:
            channel = await self._client.fetch_channel(channel_id)
        if not isinstance(channel, discord.abc.Messageable):
            raise FatalDeliveryError(f"channel {channel_id} cannot receive messages")
        return channel

    async def send(self, channel_id: int, text: str, mentions: Sequence[str] = ()) -> MessageRef:
        try:
            channel = await self._channel(channel_id)
            message = await channel.send(text, allowed_mentions=allowed_mentions_for(mentions))
        except DeliveryError:
            raise
        except _TRANSLATED as e:
            raise translate_error(e) from e
        return MessageRef(channel_id=channel_id, message_id=message.id)

    async def delete(self, ref: MessageRef) -> None:
        try:
            channel = await self._channel(ref.channel_id)
            await channel.get_partial_message(ref.message_id).delete()
        except discord.NotFound:
            # Already gone counts as deleted
            return
        except DeliveryError:
            raise
        except _TRANSLATED as e:
            raise translate_error(e) from e

    async def purge(self, channel_id: int, limit: int = 100) -> int:
        """Delete this bot's own recent messages in a channel."""
        me = self._client.user
        try:
            channel = await self._channel(channel_id)
            if not hasattr(channel, "purge"):
                return 0
            deleted = await channel.purge(limit=limit, check=lambda m: me is not None and m.author.id == me.id)
        except DeliveryError:
            raise
        except _TRANSLATED as e:
            raise translate_error(e) from e
        return len(deleted)
