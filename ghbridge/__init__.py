"""GitHub -> Discord event bridge package."""

from ghbridge.config import AppConfig, ConfigError, __version__
from ghbridge.domain import (
    Bridge,
    DispatchQueue,
    EventClassifier,
    EventKind,
    MentionDirectory,
    OutboundMessage,
    RoutedEvent,
    StatusRefresher,
)

__all__ = [
    "__version__",
    "AppConfig",
    "ConfigError",
    "Bridge",
    "DispatchQueue",
    "EventClassifier",
    "EventKind",
    "MentionDirectory",
    "OutboundMessage",
    "RoutedEvent",
    "StatusRefresher",
]
