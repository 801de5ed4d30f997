"""Port interfaces (Hexagonal Architecture)."""

from ghbridge.ports.inbound import WebhookDelivery
from ghbridge.ports.outbound import (
    DeliveryError,
    EgressPort,
    FailureSink,
    FatalDeliveryError,
    MessageRef,
    RateLimited,
    TransientDeliveryError,
)

__all__ = [
    "WebhookDelivery",
    "DeliveryError",
    "EgressPort",
    "FailureSink",
    "FatalDeliveryError",
    "MessageRef",
    "RateLimited",
    "TransientDeliveryError",
]
