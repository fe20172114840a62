"""In-memory delivery queue and correlation tracking used by the orchestrator."""
from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, List, Optional, Tuple

from .errors import TaskTimeoutError
from .models import AgentMessage, MessageType

logger = logging.getLogger(__name__)

Delivery = Tuple[str, AgentMessage]

# Message types that can complete an outstanding task.
REPLY_TYPES = frozenset({MessageType.RESPONSE, MessageType.ERROR, MessageType.DATA})


class PendingQueue:
    """FIFO of ``(target_id, message)`` deliveries awaiting the drain loop."""

    def __init__(self) -> None:
        self._items: Deque[Delivery] = deque()

    def push(self, target_id: str, message: AgentMessage) -> None:
        self._items.append((target_id, message))

    def pop_batch(self, limit: int) -> List[Delivery]:
        """Remove and return up to ``limit`` deliveries in arrival order."""
        batch: List[Delivery] = []
        while self._items and len(batch) < limit:
            batch.append(self._items.popleft())
        return batch

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)


@dataclass(slots=True)
class _Waiter:
    agent_id: str
    future: "asyncio.Future[AgentMessage]"
    timer: Optional[asyncio.TimerHandle]


class ReplyRegistry:
    """Maps correlation ids to single-resolution reply handles.

    Each handle is a future with a timeout timer. The future's done callback is
    the only place a handle is removed, so it is deregistered exactly once
    whether it completes by reply, timeout, failure or cancellation.
    """

    def __init__(self) -> None:
        self._waiters: Dict[str, _Waiter] = {}

    def open(self, correlation_id: str, agent_id: str, timeout: float) -> "asyncio.Future[AgentMessage]":
        if correlation_id in self._waiters:
            raise ValueError(f"Correlation id {correlation_id} is already outstanding")
        loop = asyncio.get_running_loop()
        future: asyncio.Future[AgentMessage] = loop.create_future()
        timer = loop.call_later(timeout, self._expire, correlation_id, timeout)
        self._waiters[correlation_id] = _Waiter(agent_id=agent_id, future=future, timer=timer)
        future.add_done_callback(lambda _: self._discard(correlation_id))
        return future

    def is_pending(self, correlation_id: Optional[str]) -> bool:
        return correlation_id is not None and correlation_id in self._waiters

    def resolve(self, message: AgentMessage) -> bool:
        """Complete the handle matching ``message.correlation_id``, if any.

        Only replies count: a command carrying the id, such as a forwarded
        request, leaves the handle pending.
        """
        if message.type not in REPLY_TYPES or not message.correlation_id:
            return False
        waiter = self._waiters.get(message.correlation_id)
        if waiter is None or waiter.future.done():
            return False
        waiter.future.set_result(message)
        return True

    def fail(self, correlation_id: str, exc: BaseException) -> bool:
        waiter = self._waiters.get(correlation_id)
        if waiter is None or waiter.future.done():
            return False
        waiter.future.set_exception(exc)
        return True

    def fail_all(self, exc_factory: Callable[[str], BaseException]) -> int:
        """Fail every outstanding handle with ``exc_factory(correlation_id)``."""
        failed = 0
        for correlation_id in list(self._waiters):
            if self.fail(correlation_id, exc_factory(correlation_id)):
                failed += 1
        return failed

    def _expire(self, correlation_id: str, timeout: float) -> None:
        waiter = self._waiters.get(correlation_id)
        if waiter is None or waiter.future.done():
            return
        logger.warning("No reply for %s from agent %s within %gs", correlation_id, waiter.agent_id, timeout)
        waiter.future.set_exception(TaskTimeoutError(waiter.agent_id, correlation_id, timeout))

    def _discard(self, correlation_id: str) -> None:
        waiter = self._waiters.pop(correlation_id, None)
        if waiter is not None and waiter.timer is not None:
            waiter.timer.cancel()

    def __len__(self) -> int:
        return len(self._waiters)
