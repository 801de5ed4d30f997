"""Status refresher — keeps exactly one live status message in a channel.

Each cycle deletes the previous status message and posts a fresh one. Cycles
never overlap: a tick that fires while a cycle is still running is skipped,
not queued.
"""

import asyncio
import inspect
import sys
from enum import Enum
from typing import Awaitable, Callable, Optional, Set, Union

from ghbridge.domain.dispatch import DispatchQueue
from ghbridge.domain.models import OutboundMessage
from ghbridge.ports.outbound import MessageRef

Compose = Callable[[], Union[str, Awaitable[str]]]

# How far back the first cycle looks for stale status messages
_SWEEP_LIMIT = 100


def _log(msg: str):
    print(msg, file=sys.stderr)


class RefreshState(Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


class StatusRefresher:
    """Timer-driven delete-then-post cycle for the status channel."""

    def __init__(
        self,
        dispatcher: DispatchQueue,
        channel_id: int,
        interval: float,
        compose: Compose,
        sweep_on_start: bool = False,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._dispatcher = dispatcher
        self.channel_id = channel_id
        self.interval = interval
        self._compose = compose
        self._state = RefreshState.IDLE
        self._needs_sweep = sweep_on_start
        self._loop_task: Optional[asyncio.Task] = None
        self._tick_tasks: Set[asyncio.Task] = set()
        # Only this refresher reads or writes the live message reference
        self.last_posted: Optional[MessageRef] = None
        self.cycles = 0
        self.skipped = 0

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def running(self) -> bool:
        return bool(self._loop_task) and not self._loop_task.done()

    async def tick(self) -> bool:
        """Run one refresh cycle. Returns False when skipped due to overlap."""
        if self._state is RefreshState.REFRESHING:
            self.skipped += 1
            _log("[status] previous refresh still running, skipping tick")
            return False
        self._state = RefreshState.REFRESHING
        try:
            await self._refresh()
        except Exception as e:
            _log(f"[status] refresh failed: {e}")
        finally:
            self._state = RefreshState.IDLE
            self.cycles += 1
        return True

    async def _refresh(self):
        text = self._compose()
        if inspect.isawaitable(text):
            text = await text

        if self._needs_sweep:
            self._needs_sweep = False
            removed = await self._dispatcher.purge(self.channel_id, _SWEEP_LIMIT)
            if removed:
                _log(f"[status] swept {removed} stale message(s) from channel {self.channel_id}")

        if self.last_posted is not None:
            previous, self.last_posted = self.last_posted, None
            await self._dispatcher.delete(previous)

        future = asyncio.get_running_loop().create_future()
        message = OutboundMessage(
            channel_id=self.channel_id,
            text=text,
            priority=True,
            result=future,
        )
        if not self._dispatcher.enqueue(message):
            return
        ref = await future
        if ref is None:
            _log(f"[status] status message {message.correlation_id} was not delivered")
            return
        self.last_posted = ref

    def start(self):
        """Start the background timer. The first cycle runs immediately."""
        if not self.running:
            self._loop_task = asyncio.create_task(self._loop(), name="status-refresher")
            _log(f"[status] refresher started, interval={self.interval}s channel={self.channel_id}")

    async def _loop(self):
        while True:
            task = asyncio.create_task(self.tick())
            self._tick_tasks.add(task)
            task.add_done_callback(self._tick_tasks.discard)
            await asyncio.sleep(self.interval)

    async def stop(self):
        tasks = list(self._tick_tasks)
        if self._loop_task:
            tasks.append(self._loop_task)
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._loop_task = None
