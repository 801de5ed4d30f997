"""Bridge — classify an inbound delivery and hand it to the dispatch queue."""

import sys
from dataclasses import dataclass

from ghbridge.domain.classifier import EventClassifier
from ghbridge.domain.dispatch import DispatchQueue
from ghbridge.domain.models import RoutedEvent
from ghbridge.ports.inbound import WebhookDelivery


def _log(msg: str):
    print(msg, file=sys.stderr)


@dataclass(frozen=True)
class HandleResult:
    routed: RoutedEvent
    accepted: bool  # False when ignored or when the dispatcher is shut down


class Bridge:
    """Ingress-facing entry point. Safe to call for duplicate deliveries."""

    def __init__(self, classifier: EventClassifier, dispatcher: DispatchQueue):
        self.classifier = classifier
        self.dispatcher = dispatcher

    def handle(self, delivery: WebhookDelivery) -> HandleResult:
        routed = self.classifier.classify(delivery.event_name, delivery.payload)
        if not routed.routable:
            _log(f"[bridge] ignored {delivery.event_name!r} delivery {delivery.delivery_id}: {routed.reason}")
            return HandleResult(routed, accepted=False)
        if not self.dispatcher.enqueue(routed.to_message()):
            _log(f"[bridge] dispatcher closed, dropped delivery {delivery.delivery_id or '-'}")
            return HandleResult(routed, accepted=False)
        _log(
            f"[bridge] {routed.kind.value}/{routed.action} -> channel {routed.channel_id} "
            f"(delivery {delivery.delivery_id or '-'})"
        )
        return HandleResult(routed, accepted=True)
