"""Domain data models — pure Python dataclasses."""

import asyncio
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

# Discord rejects message content above this length
MAX_MESSAGE_LENGTH = 2000


class EventKind(Enum):
    PULL_REQUEST = "pull_request"
    REVIEW_REQUESTED = "review_requested"
    WORKFLOW_RUN = "workflow_run"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class RoutedEvent:
    """Classifier output: where a notification goes and what it says."""

    kind: EventKind
    action: str
    channel_id: int = 0
    body: str = ""
    mentions: Tuple[str, ...] = ()
    reason: str = ""  # why an event was not recognized, logging only

    def __post_init__(self):
        if self.kind is not EventKind.UNRECOGNIZED and not self.channel_id:
            raise ValueError(f"{self.kind.name} event needs a destination channel")

    @classmethod
    def ignored(cls, action: str = "", reason: str = "") -> "RoutedEvent":
        return cls(kind=EventKind.UNRECOGNIZED, action=action or "", reason=reason)

    @property
    def routable(self) -> bool:
        return self.kind is not EventKind.UNRECOGNIZED

    def to_message(self) -> "OutboundMessage":
        return OutboundMessage(channel_id=self.channel_id, text=self.body, mentions=self.mentions)


@dataclass
class OutboundMessage:
    """One message waiting for (or going through) delivery."""

    channel_id: int
    text: str
    mentions: Tuple[str, ...] = ()
    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    priority: bool = False
    # Resolved with the MessageRef on delivery, None when the message is dropped
    result: Optional[asyncio.Future] = None

    def __post_init__(self):
        if len(self.text) > MAX_MESSAGE_LENGTH:
            self.text = self.text[: MAX_MESSAGE_LENGTH - 3] + "..."

    def settle(self, value) -> None:
        if self.result is not None and not self.result.done():
            self.result.set_result(value)
