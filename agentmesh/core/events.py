"""Typed in-process notifications for agents and the orchestrator."""
from __future__ import annotations

import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Subscriber = Callable[[Any], None]


class AgentEvent(str, Enum):
    """Notifications emitted by an agent runtime."""

    STARTED = "started"
    STOPPED = "stopped"
    STATUS_CHANGED = "status_changed"
    OUTBOUND = "outbound"


class OrchestratorEvent(str, Enum):
    """Notifications emitted by the orchestrator for external observers."""

    STARTED = "started"
    STOPPED = "stopped"
    AGENT_REGISTERED = "agent_registered"
    AGENT_STATUS_CHANGED = "agent_status_changed"
    AGENT_UNHEALTHY = "agent_unhealthy"
    AGENT_RECOVERED = "agent_recovered"
    MESSAGE_ROUTED = "message_routed"


class EventHub:
    """Holds one ordered subscriber list per event kind."""

    def __init__(self) -> None:
        self._subscribers: Dict[Enum, List[Subscriber]] = defaultdict(list)

    def subscribe(self, kind: Enum, subscriber: Subscriber) -> Callable[[], None]:
        """Register ``subscriber`` for ``kind`` and return a callable that removes it."""
        self._subscribers[kind].append(subscriber)

        def unsubscribe() -> None:
            try:
                self._subscribers[kind].remove(subscriber)
            except ValueError:
                pass

        return unsubscribe

    def subscriber_count(self, kind: Enum) -> int:
        return len(self._subscribers.get(kind, ()))

    def emit(self, kind: Enum, payload: Any = None) -> None:
        for subscriber in list(self._subscribers.get(kind, ())):
            try:
                subscriber(payload)
            except Exception:  # noqa: BLE001
                logger.exception("Subscriber for %s raised", kind.value)
