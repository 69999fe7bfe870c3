"""Live progress reporting for backup, restore and disaster-recovery runs.

Events are published per operation. Observers subscribe to one operation's
topic, or opt in to every event with ``subscribe_all()``. Publishing never
blocks: each subscriber owns a bounded queue and a subscriber that falls
behind is dropped. Nothing is persisted or replayed.
"""

import asyncio
from collections import defaultdict
from typing import Dict, Optional, Protocol, Set

from ._utils import logger
from .schemas import (
    PROGRESS_COMPLETE,
    PROGRESS_FAILED,
    OperationKind,
    OperationState,
    ProgressEvent,
)

# Only terminal events may carry 100
NON_TERMINAL_CAP = 99.99

_CLOSED = object()


class ProgressSink(Protocol):
    def publish(self, event: ProgressEvent) -> None:
        ...


class Subscription:
    """Async iterator over the events delivered to one observer."""

    def __init__(self, channel: "ProgressChannel", operation_id: Optional[str], max_queue_size: int):
        self.channel = channel
        self.operation_id = operation_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue_size)
        self.closed = False

    def _offer(self, event: ProgressEvent) -> bool:
        try:
            self.queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            return False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.channel._remove(self)
        try:
            self.queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            pass

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ProgressEvent:
        if self.closed and self.queue.empty():
            raise StopAsyncIteration
        event = await self.queue.get()
        if event is _CLOSED:
            raise StopAsyncIteration
        return event


class ProgressChannel:
    """Per-operation publish/subscribe with an opt-in broadcast mode."""

    def __init__(self, max_queue_size: int = 100):
        self.max_queue_size = max_queue_size
        self._topics: Dict[str, Set[Subscription]] = defaultdict(set)
        self._broadcast: Set[Subscription] = set()

    def subscribe(self, operation_id: str) -> Subscription:
        """Receive events of a single operation. Ends after its terminal event."""
        subscription = Subscription(self, operation_id, self.max_queue_size)
        self._topics[operation_id].add(subscription)
        return subscription

    def subscribe_all(self) -> Subscription:
        """Receive every event of every operation."""
        subscription = Subscription(self, None, self.max_queue_size)
        self._broadcast.add(subscription)
        return subscription

    @property
    def subscriber_count(self) -> int:
        return len(self._broadcast) + sum(len(subs) for subs in self._topics.values())

    def _remove(self, subscription: Subscription) -> None:
        if subscription.operation_id is None:
            self._broadcast.discard(subscription)
            return
        topic = self._topics.get(subscription.operation_id)
        if topic is not None:
            topic.discard(subscription)
            if not topic:
                del self._topics[subscription.operation_id]

    def publish(self, event: ProgressEvent) -> None:
        """Deliver event to the operation's subscribers and to broadcast subscribers."""
        topic = list(self._topics.get(event.operation_id, ()))
        for subscription in topic + list(self._broadcast):
            if not subscription._offer(event):
                logger.warning("Dropping unresponsive progress subscriber")
                subscription.close()

        if event.is_terminal:
            for subscription in topic:
                subscription.close()


class OperationTracker:
    """State and progress of one run.

    Percentages never decrease and exactly one terminal event is emitted.
    Observer failures are logged and never affect the run.
    """

    def __init__(
        self,
        operation: OperationKind,
        operation_id: str,
        sink: Optional[ProgressSink] = None
    ):
        self.operation = operation
        self.operation_id = operation_id
        self.sink = sink
        self.state = OperationState.IDLE
        self.last_percentage: Optional[float] = None
        self.finished = False

    def transition(self, state: OperationState) -> None:
        logger.debug(f"{self.operation.value} {self.operation_id}: {self.state.value} -> {state.value}")
        self.state = state

    def advance(self, message: str, percentage: float) -> None:
        if self.finished:
            return
        floor = self.last_percentage if self.last_percentage is not None else 0.0
        percentage = min(max(round(percentage, 2), floor), NON_TERMINAL_CAP)
        self._emit(message, percentage)

    def complete(self, message: str) -> None:
        if self.finished:
            return
        self.finished = True
        self.transition(OperationState.COMPLETED)
        self._emit(message, PROGRESS_COMPLETE)

    def fail(self, message: str) -> None:
        if self.finished:
            return
        self.finished = True
        self.transition(OperationState.FAILED)
        self._emit(message, PROGRESS_FAILED)

    def _emit(self, message: str, percentage: float) -> None:
        self.last_percentage = percentage
        if self.sink is None:
            return

        event = ProgressEvent(
            operation_id=self.operation_id,
            operation=self.operation,
            message=message,
            percentage=percentage,
        )
        try:
            self.sink.publish(event)
        except Exception as e:
            logger.warning(f"Progress observer failed for {self.operation_id}: {e}")
