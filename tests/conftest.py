"""Shared fakes for bridge tests."""

import asyncio
from typing import Dict, List, Optional, Tuple

import pytest

from ghbridge.config import ChannelMap
from ghbridge.ports.outbound import DeliveryFailure, MessageRef

PR_CHANNEL = 101
REVIEW_CHANNEL = 102
WORKFLOW_CHANNEL = 103
STATUS_CHANNEL = 900


class FakeEgress:
    """In-memory EgressPort.

    ``plan[text]`` is a list of exceptions raised (in order) on the next
    sends of that text; ``gate`` blocks every send until set.
    """

    def __init__(self):
        self.attempts: List[Tuple[int, str]] = []
        self.sent: List[Tuple[int, str, Tuple[str, ...]]] = []
        self.deleted: List[MessageRef] = []
        self.purged: List[int] = []
        self.plan: Dict[str, List[Exception]] = {}
        self.delete_errors: List[Exception] = []
        self.gate: Optional[asyncio.Event] = None
        self._next_id = 5000

    async def send(self, channel_id, text, mentions=()):
        self.attempts.append((channel_id, text))
        if self.gate is not None:
            await self.gate.wait()
        planned = self.plan.get(text)
        if planned:
            raise planned.pop(0)
        self._next_id += 1
        self.sent.append((channel_id, text, tuple(mentions)))
        return MessageRef(channel_id=channel_id, message_id=self._next_id)

    async def delete(self, ref):
        if self.delete_errors:
            raise self.delete_errors.pop(0)
        self.deleted.append(ref)

    async def purge(self, channel_id, limit=100):
        self.purged.append(channel_id)
        return 0

    def texts(self, channel_id=None) -> List[str]:
        return [t for ch, t, _ in self.sent if channel_id is None or ch == channel_id]


class ListSink:
    def __init__(self):
        self.failures: List[DeliveryFailure] = []

    def report(self, failure):
        self.failures.append(failure)


class RecordingSleep:
    """Stands in for asyncio.sleep: records delays, yields once."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay):
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def egress():
    return FakeEgress()


@pytest.fixture
def sink():
    return ListSink()


@pytest.fixture
def fake_sleep():
    return RecordingSleep()


@pytest.fixture
def channels():
    return ChannelMap(
        pull_request=PR_CHANNEL,
        review_requested=REVIEW_CHANNEL,
        workflow_run=WORKFLOW_CHANNEL,
    )
