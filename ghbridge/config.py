"""Configuration — read once at startup, immutable afterwards."""

__version__ = "0.1.0"

import os
import sys
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

_stderr_print = lambda *a, **kw: print(*a, **kw, file=sys.stderr)

MENTION_ENV_PREFIX = "GITHUB_NOTIFY_"


class ConfigError(ValueError):
    """Raised when a required setting is missing or malformed."""


def _int(env: Mapping[str, str], key: str, default: Optional[int] = None) -> int:
    raw = env.get(key, "").strip()
    if not raw:
        if default is None:
            raise ConfigError(f"{key} must be set")
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}")


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}")


def _bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


# ── Typed config ────────────────────────────────────────────


@dataclass(frozen=True)
class ChannelMap:
    """Destination channel per event kind."""

    pull_request: int = 0
    review_requested: int = 0
    workflow_run: int = 0
    general: int = 0

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "ChannelMap":
        general = _int(env, "DISCORD_GENERAL_CHANNEL_ID", 0)
        pr = _int(env, "DISCORD_PR_CHANNEL_ID", 0) or general
        review = _int(env, "DISCORD_REVIEW_CHANNEL_ID", 0) or pr
        workflow = _int(env, "DISCORD_WORKFLOW_CHANNEL_ID", 0) or general
        channels = cls(
            pull_request=pr,
            review_requested=review,
            workflow_run=workflow,
            general=general,
        )
        channels.validate()
        return channels

    def validate(self):
        missing = [
            name
            for name in ("pull_request", "review_requested", "workflow_run")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigError(
                f"no Discord channel configured for {', '.join(missing)} "
                f"(and no DISCORD_GENERAL_CHANNEL_ID fallback)"
            )


@dataclass(frozen=True)
class DispatchConfig:
    max_pending: int = 100
    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: float = 0.1
    shutdown_grace: float = 5.0


@dataclass(frozen=True)
class StatusConfig:
    channel_id: int = 0
    interval: float = 600.0
    disk_paths: Tuple[str, ...] = ("/",)
    sweep_on_start: bool = True


@dataclass(frozen=True)
class DiscordConfig:
    token: str = ""
    dev_role_id: int = 0
    max_ratelimit_timeout: float = 30.0


@dataclass(frozen=True)
class AppConfig:
    """Process-wide configuration, passed explicitly to every component."""

    host: str = "0.0.0.0"
    port: int = 3000
    webhook_secret: str = ""
    channels: ChannelMap = field(default_factory=ChannelMap)
    mentions: Tuple[Tuple[str, str], ...] = ()
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    status: StatusConfig = field(default_factory=StatusConfig)
    discord: DiscordConfig = field(default_factory=DiscordConfig)

    @property
    def mention_map(self) -> Dict[str, str]:
        return dict(self.mentions)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """Create AppConfig from environment variables. Raises ConfigError."""
        env = os.environ if env is None else env

        status_channel = _int(env, "DISCORD_STATUS_CHANNEL_ID", 0)
        if not status_channel:
            raise ConfigError("DISCORD_STATUS_CHANNEL_ID must be set")
        interval = _float(env, "STATUS_UPDATE_INTERVAL_SECS", 600.0)
        if interval <= 0:
            raise ConfigError("STATUS_UPDATE_INTERVAL_SECS must be positive")
        disk_paths = tuple(
            p.strip() for p in env.get("STATUS_DISK_PATHS", "/").split(",") if p.strip()
        ) or ("/",)

        dispatch = DispatchConfig(
            max_pending=_int(env, "DISPATCH_MAX_PENDING", 100),
            max_attempts=_int(env, "DISPATCH_MAX_ATTEMPTS", 5),
            base_delay=_float(env, "DISPATCH_BASE_DELAY_SECS", 1.0),
            max_delay=_float(env, "DISPATCH_MAX_DELAY_SECS", 30.0),
            jitter=_float(env, "DISPATCH_JITTER", 0.1),
            shutdown_grace=_float(env, "DISPATCH_SHUTDOWN_GRACE_SECS", 5.0),
        )
        if dispatch.max_pending < 1 or dispatch.max_attempts < 1:
            raise ConfigError("DISPATCH_MAX_PENDING and DISPATCH_MAX_ATTEMPTS must be >= 1")
        max_ratelimit_timeout = _float(env, "DISCORD_MAX_RATELIMIT_TIMEOUT", 30.0)
        if max_ratelimit_timeout < 30.0:
            raise ConfigError("DISCORD_MAX_RATELIMIT_TIMEOUT must be at least 30 seconds")

        return cls(
            host=env.get("HOST", "0.0.0.0").strip() or "0.0.0.0",
            port=_int(env, "PORT", 3000),
            webhook_secret=env.get("GITHUB_WEBHOOK_SECRET", ""),
            channels=ChannelMap.from_env(env),
            mentions=mention_entries_from_env(env),
            dispatch=dispatch,
            status=StatusConfig(
                channel_id=status_channel,
                interval=interval,
                disk_paths=disk_paths,
                sweep_on_start=_bool(env, "STATUS_SWEEP_ON_START", True),
            ),
            discord=DiscordConfig(
                token=env.get("DISCORD_TOKEN", "").strip(),
                dev_role_id=_int(env, "DISCORD_DEV_ROLE_ID", 0),
                max_ratelimit_timeout=max_ratelimit_timeout,
            ),
        )


def mention_entries_from_env(env: Mapping[str, str]) -> Tuple[Tuple[str, str], ...]:
    """Collect ``GITHUB_NOTIFY_<username>=<mention>`` pairs, sorted by username."""
    entries = []
    for key, value in env.items():
        if not key.startswith(MENTION_ENV_PREFIX):
            continue
        username = key[len(MENTION_ENV_PREFIX):]
        token = value.strip()
        if not username or not token:
            _stderr_print(f"Ignoring empty mention entry {key!r}")
            continue
        entries.append((username, token))
    return tuple(sorted(entries))
