"""Outbound ports — interfaces for the chat platform and the failure sink."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol, Sequence, runtime_checkable


@dataclass(frozen=True)
class MessageRef:
    """Identifies one delivered chat message."""

    channel_id: int
    message_id: int


@dataclass(frozen=True)
class DeliveryFailure:
    """Structured record of a message that was given up on."""

    channel_id: int
    text: str  # truncated preview
    attempts: int
    reason: str
    correlation_id: str = ""
    failed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    PREVIEW_CHARS = 120

    @classmethod
    def build(cls, channel_id: int, text: str, attempts: int, reason: str,
              correlation_id: str = "") -> "DeliveryFailure":
        preview = text if len(text) <= cls.PREVIEW_CHARS else text[: cls.PREVIEW_CHARS - 3] + "..."
        return cls(
            channel_id=channel_id,
            text=preview,
            attempts=attempts,
            reason=reason,
            correlation_id=correlation_id,
        )


class DeliveryError(Exception):
    """Base class for egress failures."""


class RateLimited(DeliveryError):
    """The platform asked us to back off for ``retry_after`` seconds."""

    def __init__(self, retry_after: float, message: str = ""):
        self.retry_after = max(0.0, float(retry_after))
        super().__init__(message or f"rate limited, retry after {self.retry_after:.2f}s")


class TransientDeliveryError(DeliveryError):
    """A failure worth retrying (5xx, timeouts, connection resets)."""


class FatalDeliveryError(DeliveryError):
    """A failure that will not go away by retrying (missing channel, no permission)."""


@runtime_checkable
class EgressPort(Protocol):
    """Interface for the chat platform client."""

    async def send(self, channel_id: int, text: str, mentions: Sequence[str] = ()) -> MessageRef: ...

    async def delete(self, ref: MessageRef) -> None: ...

    async def purge(self, channel_id: int, limit: int = 100) -> int: ...


@runtime_checkable
class FailureSink(Protocol):
    """Receives one record per dropped message."""

    def report(self, failure: DeliveryFailure) -> None: ...
