"""Inbound port — a decoded, already-authenticated webhook delivery."""

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class WebhookDelivery:
    """Transport-agnostic representation of one GitHub webhook call."""

    event_name: str  # X-GitHub-Event header, e.g. "pull_request"
    payload: Dict[str, Any] = field(default_factory=dict)
    delivery_id: str = ""  # X-GitHub-Delivery header, logging only
