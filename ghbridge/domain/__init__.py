"""Domain layer — pure Python, no framework dependencies."""

from ghbridge.domain.models import EventKind, OutboundMessage, RoutedEvent
from ghbridge.domain.mentions import MentionDirectory
from ghbridge.domain.classifier import EventClassifier
from ghbridge.domain.dispatch import DispatchQueue, LogFailureSink, RetryPolicy
from ghbridge.domain.status import RefreshState, StatusRefresher
from ghbridge.domain.bridge import Bridge, HandleResult

__all__ = [
    "EventKind",
    "OutboundMessage",
    "RoutedEvent",
    "MentionDirectory",
    "EventClassifier",
    "DispatchQueue",
    "LogFailureSink",
    "RetryPolicy",
    "RefreshState",
    "StatusRefresher",
    "Bridge",
    "HandleResult",
]
