"""Agent contract and the reusable runtime concrete agents are built on."""
from __future__ import annotations

import abc
import logging
import time
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from agentmesh.core.errors import HandlerError
from agentmesh.core.events import AgentEvent, EventHub
from agentmesh.core.models import (
    AgentCapability,
    AgentHealth,
    AgentKind,
    AgentMessage,
    AgentState,
    AgentStatus,
    MessageType,
    new_message_id,
    utcnow,
)

logger = logging.getLogger(__name__)

Handler = Callable[[AgentMessage], Awaitable[Any]]
HealthProbe = Callable[[], Awaitable[bool]]


class Agent(abc.ABC):
    """Contract every agent hosted by the orchestrator must satisfy."""

    id: str
    name: str
    kind: AgentKind
    capabilities: List[AgentCapability]
    status: AgentStatus

    @abc.abstractmethod
    async def handle(self, message: AgentMessage) -> Optional[AgentMessage]:
        """Process a message and optionally return a response envelope."""

    @abc.abstractmethod
    async def start(self) -> None:
        """Transition the agent into the running state."""

    @abc.abstractmethod
    async def stop(self) -> None:
        """Return the agent to idle."""

    @abc.abstractmethod
    async def health_check(self) -> bool:
        """Report whether the agent is able to process messages."""

    @abc.abstractmethod
    def get_metrics(self) -> Dict[str, Any]:
        """Return a snapshot of the agent's counters."""


class AgentRuntime:
    """Lifecycle, health, metrics and handler dispatch owned by a single agent."""

    def __init__(
        self,
        agent_id: str,
        name: str,
        kind: AgentKind,
        capabilities: Sequence[AgentCapability] = (),
        *,
        health_probe: Optional[HealthProbe] = None,
    ) -> None:
        self.agent_id = agent_id
        self.name = name
        self.kind = kind
        self.capabilities = list(capabilities)
        self.status = AgentStatus(id=agent_id, name=name)
        self.events = EventHub()
        self.running = False
        self._health_probe = health_probe
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self._started_at: Optional[float] = None

    def register_handler(self, message_type: MessageType | str, handler: Handler) -> None:
        """Append ``handler`` to the ordered list for ``message_type``."""
        self._handlers[MessageType(message_type).value].append(handler)

    def handlers_for(self, message_type: MessageType | str) -> List[Handler]:
        return list(self._handlers.get(MessageType(message_type).value, ()))

    async def start(self) -> None:
        logger.info("Starting agent %s (%s)", self.name, self.agent_id)
        self.running = True
        self._started_at = time.monotonic()
        self.update_status(status=AgentState.RUNNING)
        self.events.emit(AgentEvent.STARTED, self.status)

    async def stop(self) -> None:
        logger.info("Stopping agent %s (%s)", self.name, self.agent_id)
        self.running = False
        self._started_at = None
        self.update_status(status=AgentState.IDLE)
        self.events.emit(AgentEvent.STOPPED, self.status)

    async def health_check(self) -> bool:
        """Healthy iff running, not in error, and the optional probe agrees."""
        try:
            healthy = self.running and self.status.status is not AgentState.ERROR
            if healthy and self._health_probe is not None:
                healthy = bool(await self._health_probe())
        except Exception:  # noqa: BLE001
            logger.exception("Health probe failed for agent %s", self.agent_id)
            self.status.health = AgentHealth.CRITICAL
            return False
        self.status.health = AgentHealth.HEALTHY if healthy else AgentHealth.CRITICAL
        return healthy

    def get_metrics(self) -> Dict[str, Any]:
        metrics = dict(self.status.metrics)
        metrics.setdefault("messageCount", 0)
        metrics.setdefault("taskCount", 0)
        metrics.setdefault("errorCount", 0)
        if self.running and self._started_at is not None:
            metrics["uptime"] = time.monotonic() - self._started_at
            metrics["idle_seconds"] = (utcnow() - self.status.last_activity).total_seconds()
        else:
            metrics["uptime"] = 0.0
            metrics["idle_seconds"] = 0.0
        return metrics

    async def process(self, message: AgentMessage) -> Any:
        """Run the handlers for ``message.type``; the first non-None result wins."""
        self._increment("messageCount")
        is_command = message.type is MessageType.COMMAND
        if is_command:
            self._increment("taskCount")
            self.update_status(status=AgentState.BUSY)

        failed = False
        result: Any = None
        for handler in self.handlers_for(message.type):
            try:
                result = await handler(message)
            except Exception as exc:  # noqa: BLE001
                failed = True
                self._increment("errorCount")
                logger.error("%s", HandlerError(self.agent_id, message.type.value, exc), exc_info=exc)
                continue
            if result is not None:
                break

        if is_command:
            self.update_status(status=AgentState.ERROR if failed else AgentState.IDLE)
        return result

    def update_status(self, **changes: Any) -> None:
        for key, value in changes.items():
            setattr(self.status, key, value)
        self.status.last_activity = utcnow()
        self.events.emit(AgentEvent.STATUS_CHANGED, self.status)

    def create_response(
        self,
        original: AgentMessage,
        payload: Any,
        message_type: MessageType = MessageType.RESPONSE,
    ) -> AgentMessage:
        """Build a reply to ``original`` that carries its id as correlation id."""
        return AgentMessage(
            id=new_message_id(self.agent_id),
            sender=self.agent_id,
            recipient=original.sender,
            type=message_type,
            payload=payload,
            priority=original.priority,
            correlation_id=original.id,
        )

    def send(self, message: AgentMessage) -> None:
        """Hand an agent-initiated message to whoever routes for this agent."""
        self.events.emit(AgentEvent.OUTBOUND, message)

    def _increment(self, counter: str) -> None:
        self.status.metrics[counter] = self.status.metrics.get(counter, 0) + 1


class RuntimeAgent(Agent):
    """Agent whose contract is served by an owned :class:`AgentRuntime`.

    Subclasses register handlers on ``self.runtime`` and may override the
    ``on_start``/``on_stop`` hooks.
    """

    def __init__(
        self,
        agent_id: str,
        name: str,
        kind: AgentKind = AgentKind.TOOL,
        capabilities: Sequence[AgentCapability] = (),
        *,
        health_probe: Optional[HealthProbe] = None,
    ) -> None:
        self.runtime = AgentRuntime(agent_id, name, kind, capabilities, health_probe=health_probe)

    @property
    def id(self) -> str:
        return self.runtime.agent_id

    @property
    def name(self) -> str:
        return self.runtime.name

    @property
    def kind(self) -> AgentKind:
        return self.runtime.kind

    @property
    def capabilities(self) -> List[AgentCapability]:
        return self.runtime.capabilities

    @property
    def status(self) -> AgentStatus:
        return self.runtime.status

    async def handle(self, message: AgentMessage) -> Optional[AgentMessage]:
        return await self.runtime.process(message)

    async def start(self) -> None:
        await self.runtime.start()
        await self.on_start()

    async def stop(self) -> None:
        await self.runtime.stop()
        await self.on_stop()

    async def health_check(self) -> bool:
        return await self.runtime.health_check()

    def get_metrics(self) -> Dict[str, Any]:
        return self.runtime.get_metrics()

    async def on_start(self) -> None:
        """Hook executed after the runtime enters the running state."""
        return None

    async def on_stop(self) -> None:
        """Hook executed after the runtime returns to idle."""
        return None
