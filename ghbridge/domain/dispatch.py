"""Dispatch queue — per-channel ordered delivery with retry and backoff.

Each destination channel gets one bounded pending queue and one worker task.
The worker drains its queue strictly in order, so two notifications for the
same channel are never delivered out of order, while a slow or rate-limited
channel never holds up the others.
"""

import asyncio
import json
import random
import sys
from collections import deque
from dataclasses import asdict
from typing import Awaitable, Callable, Deque, Dict, List, Optional

from ghbridge.config import DispatchConfig
from ghbridge.domain.models import OutboundMessage
from ghbridge.ports.outbound import (
    DeliveryError,
    DeliveryFailure,
    EgressPort,
    FailureSink,
    FatalDeliveryError,
    MessageRef,
    RateLimited,
)

Sleep = Callable[[float], Awaitable[None]]


def _log(msg: str):
    print(msg, file=sys.stderr)


class RetryPolicy:
    """Exponential backoff with a cap and proportional jitter."""

    def __init__(
        self,
        max_attempts: int = 5,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        jitter: float = 0.1,
        rng: Optional[random.Random] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self._rng = rng or random.Random()

    @classmethod
    def from_config(cls, config: DispatchConfig) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            base_delay=config.base_delay,
            max_delay=config.max_delay,
            jitter=config.jitter,
        )

    def backoff(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        delay = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))
        if self.jitter > 0:
            delay += self._rng.uniform(0, delay * self.jitter)
        return delay


class LogFailureSink:
    """FailureSink that writes one JSON line per dropped message to stderr."""

    def report(self, failure: DeliveryFailure) -> None:
        _log("DELIVERY_FAILURE " + json.dumps(asdict(failure), ensure_ascii=False))


class ChannelWorker:
    """Owns one channel's pending messages and delivers them in order."""

    def __init__(
        self,
        channel_id: int,
        egress: EgressPort,
        policy: RetryPolicy,
        sink: FailureSink,
        max_pending: int,
        sleep: Sleep = asyncio.sleep,
    ):
        self.channel_id = channel_id
        self._egress = egress
        self._policy = policy
        self._sink = sink
        self._max_pending = max_pending
        self._sleep = sleep
        self._pending: Deque[OutboundMessage] = deque()
        self._current: Optional[OutboundMessage] = None
        self._wakeup = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._task: Optional[asyncio.Task] = None
        self.delivered = 0
        self.failed = 0
        self.shed = 0

    @property
    def pending(self) -> int:
        return len(self._pending) + (1 if self._current else 0)

    def start(self):
        if not self._task or self._task.done():
            self._task = asyncio.create_task(self._run(), name=f"dispatch-{self.channel_id}")

    def put(self, message: OutboundMessage):
        """Queue a message without blocking. Sheds the oldest non-priority one when full."""
        if len(self._pending) >= self._max_pending:
            self._shed_oldest()
        if message.priority:
            # Priority messages go after earlier priority ones, before everything else
            index = 0
            while index < len(self._pending) and self._pending[index].priority:
                index += 1
            self._pending.insert(index, message)
        else:
            self._pending.append(message)
        self._idle.clear()
        self._wakeup.set()

    def _shed_oldest(self):
        for queued in self._pending:
            if not queued.priority:
                self._pending.remove(queued)
                self.shed += 1
                queued.settle(None)
                _log(
                    f"[dispatch:{self.channel_id}] queue full ({self._max_pending}), "
                    f"shed message {queued.correlation_id}: {queued.text[:80]!r}"
                )
                return

    async def wait_idle(self):
        await self._idle.wait()

    async def _run(self):
        while True:
            if not self._pending:
                self._idle.set()
                self._wakeup.clear()
                await self._wakeup.wait()
                continue
            message = self._pending.popleft()
            # Left set on cancellation so stop() can settle the in-flight message
            self._current = message
            await self._deliver(message)
            self._current = None

    async def _deliver(self, message: OutboundMessage):
        failures = 0
        while True:
            try:
                ref = await self._egress.send(message.channel_id, message.text, message.mentions)
            except RateLimited as e:
                # Same message goes first again once the cooldown ends
                _log(f"[dispatch:{self.channel_id}] rate limited, pausing {e.retry_after:.2f}s")
                await self._sleep(e.retry_after)
                continue
            except FatalDeliveryError as e:
                self._give_up(message, failures + 1, f"fatal: {e}")
                return
            except Exception as e:
                failures += 1
                if failures >= self._policy.max_attempts:
                    self._give_up(message, failures, f"{type(e).__name__}: {e}")
                    return
                delay = self._policy.backoff(failures)
                _log(
                    f"[dispatch:{self.channel_id}] attempt {failures}/{self._policy.max_attempts} "
                    f"failed ({e}), retrying in {delay:.2f}s"
                )
                await self._sleep(delay)
                continue
            self.delivered += 1
            message.settle(ref)
            return

    def _give_up(self, message: OutboundMessage, attempts: int, reason: str):
        self.failed += 1
        message.settle(None)
        _log(f"[dispatch:{self.channel_id}] dropped {message.correlation_id} after {attempts} attempt(s): {reason}")
        self._sink.report(
            DeliveryFailure.build(
                channel_id=message.channel_id,
                text=message.text,
                attempts=attempts,
                reason=reason,
                correlation_id=message.correlation_id,
            )
        )

    async def stop(self) -> int:
        """Cancel the worker and discard whatever is left. Returns the discard count."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        leftovers: List[OutboundMessage] = list(self._pending)
        if self._current:
            leftovers.insert(0, self._current)
            self._current = None
        self._pending.clear()
        for message in leftovers:
            message.settle(None)
        self._idle.set()
        return len(leftovers)


class DispatchQueue:
    """Routes outbound messages to per-channel workers."""

    def __init__(
        self,
        egress: EgressPort,
        policy: Optional[RetryPolicy] = None,
        sink: Optional[FailureSink] = None,
        max_pending: int = 100,
        sleep: Sleep = asyncio.sleep,
    ):
        self._egress = egress
        self._policy = policy or RetryPolicy()
        self._sink = sink or LogFailureSink()
        self._max_pending = max_pending
        self._sleep = sleep
        self._workers: Dict[int, ChannelWorker] = {}
        self._closed = False

    @classmethod
    def from_config(cls, egress: EgressPort, config: DispatchConfig,
                    sink: Optional[FailureSink] = None) -> "DispatchQueue":
        return cls(
            egress,
            policy=RetryPolicy.from_config(config),
            sink=sink,
            max_pending=config.max_pending,
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def enqueue(self, message: OutboundMessage) -> bool:
        """Hand a message to its channel worker. Must be called from the event loop."""
        if self._closed:
            _log(f"[dispatch] closed, rejecting message {message.correlation_id}")
            message.settle(None)
            return False
        worker = self._workers.get(message.channel_id)
        if worker is None:
            worker = ChannelWorker(
                message.channel_id,
                self._egress,
                self._policy,
                self._sink,
                self._max_pending,
                sleep=self._sleep,
            )
            self._workers[message.channel_id] = worker
        worker.start()
        worker.put(message)
        return True

    async def delete(self, ref: MessageRef) -> bool:
        """Best-effort delete. Waits out one rate limit; never raises DeliveryError."""
        for _ in range(2):
            try:
                await self._egress.delete(ref)
                return True
            except RateLimited as e:
                _log(f"[dispatch:{ref.channel_id}] delete rate limited, pausing {e.retry_after:.2f}s")
                await self._sleep(e.retry_after)
            except DeliveryError as e:
                _log(f"[dispatch:{ref.channel_id}] WARNING: failed to delete message {ref.message_id}: {e}")
                return False
        _log(f"[dispatch:{ref.channel_id}] WARNING: gave up deleting message {ref.message_id}")
        return False

    async def purge(self, channel_id: int, limit: int = 100) -> int:
        """Best-effort removal of earlier bot messages in a channel."""
        try:
            return await self._egress.purge(channel_id, limit)
        except DeliveryError as e:
            _log(f"[dispatch:{channel_id}] WARNING: purge failed: {e}")
            return 0

    async def join(self):
        """Wait until every channel queue is empty and nothing is in flight."""
        await asyncio.gather(*(w.wait_idle() for w in list(self._workers.values())))

    def stats(self) -> Dict[str, object]:
        channels = {
            ch: {
                "pending": w.pending,
                "delivered": w.delivered,
                "failed": w.failed,
                "shed": w.shed,
            }
            for ch, w in self._workers.items()
        }
        return {
            "closed": self._closed,
            "pending": sum(c["pending"] for c in channels.values()),
            "delivered": sum(c["delivered"] for c in channels.values()),
            "failed": sum(c["failed"] for c in channels.values()),
            "shed": sum(c["shed"] for c in channels.values()),
            "channels": channels,
        }

    async def close(self, grace: float = 5.0) -> int:
        """Stop accepting messages, drain for up to ``grace`` seconds, discard the rest."""
        self._closed = True
        workers = list(self._workers.values())
        if workers:
            try:
                await asyncio.wait_for(self.join(), timeout=grace)
            except asyncio.TimeoutError:
                _log(f"[dispatch] shutdown grace period ({grace}s) elapsed with messages pending")
        discarded = 0
        for worker in workers:
            discarded += await worker.stop()
        if discarded:
            _log(f"[dispatch] discarded {discarded} undelivered message(s) on shutdown")
        return discarded
