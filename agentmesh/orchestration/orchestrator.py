"""Orchestrator: agent registry, message bus and scheduler."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple

from agentmesh.agents.base import Agent, AgentRuntime
from agentmesh.config import DeliveryMode, OrchestrationConfig
from agentmesh.core.errors import (
    AgentMeshError,
    AgentNotFoundError,
    DeliveryError,
    HealthCheckError,
    TaskFailedError,
    WorkflowError,
)
from agentmesh.core.events import AgentEvent, EventHub, OrchestratorEvent
from agentmesh.core.message_bus import PendingQueue, ReplyRegistry
from agentmesh.core.models import (
    BROADCAST,
    AgentHealth,
    AgentMessage,
    AgentStatus,
    MessagePriority,
    MessageType,
    new_message_id,
)
from agentmesh.orchestration.workflow import StepResult, TaskOutcome, TaskStatus, Workflow, WorkflowResult

logger = logging.getLogger(__name__)

QUEUE_DRAIN_TICK = 0.1

Operation = Tuple[str, Any]


class Orchestrator:
    """Coordinate registered agents: routing, health monitoring and task dispatch.

    All state is confined to the event loop that runs the orchestrator. Deliveries
    are spawned as tasks, so sending never waits on an agent's handler.
    """

    def __init__(self, settings: Optional[OrchestrationConfig] = None) -> None:
        self.config = settings or OrchestrationConfig()
        self.events = EventHub()
        self._agents: Dict[str, Agent] = {}
        self._subscriptions: Dict[str, List[Callable[[], None]]] = {}
        self._health: Dict[str, bool] = {}
        self._queue = PendingQueue()
        self._replies = ReplyRegistry()
        self._in_flight: Set[asyncio.Task[None]] = set()
        self._loops: List[asyncio.Task[None]] = []
        self._running = False

    @property
    def id(self) -> str:
        return self.config.orchestrator_id

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    @property
    def outstanding_replies(self) -> int:
        return len(self._replies)

    # Registry -----------------------------------------------------------------

    def register_agent(self, agent: Agent) -> None:
        """Add ``agent`` to the registry, replacing any agent with the same id."""
        if agent.id in (self.id, BROADCAST):
            raise ValueError(f"Agent id {agent.id!r} is reserved")

        previous = self._agents.get(agent.id)
        if previous is not None and previous is not agent:
            logger.warning("Replacing agent %s (%s) registered under the same id", previous.name, agent.id)
        for unsubscribe in self._subscriptions.pop(agent.id, ()):
            unsubscribe()

        logger.info("Registering agent %s (%s)", agent.name, agent.id)
        self._agents[agent.id] = agent
        self._health.pop(agent.id, None)

        runtime = getattr(agent, "runtime", None)
        if isinstance(runtime, AgentRuntime):
            agent_id = agent.id
            self._subscriptions[agent_id] = [
                runtime.events.subscribe(
                    AgentEvent.STATUS_CHANGED,
                    lambda status: self.events.emit(
                        OrchestratorEvent.AGENT_STATUS_CHANGED,
                        {"agent_id": agent_id, "status": status},
                    ),
                ),
                runtime.events.subscribe(AgentEvent.OUTBOUND, self.route_message),
            ]
        self.events.emit(OrchestratorEvent.AGENT_REGISTERED, agent)

    def get_agent(self, agent_id: str) -> Optional[Agent]:
        return self._agents.get(agent_id)

    def list_agents(self) -> List[Agent]:
        return list(self._agents.values())

    def get_agent_statuses(self) -> List[AgentStatus]:
        return [agent.status for agent in self._agents.values()]

    # Lifecycle ----------------------------------------------------------------

    async def start(self) -> None:
        """Start registered agents and launch the heartbeat and queue-drain loops."""
        if self._running:
            logger.warning("Orchestrator %s is already running; ignoring start()", self.id)
            return
        logger.info("Starting orchestrator %s", self.id)
        self._running = True

        if self.config.start_agents:
            await self._call_on_agents("start")

        if self.config.enable_monitoring:
            self._loops.append(asyncio.create_task(self._heartbeat_loop(), name=f"{self.id}-heartbeat"))
        self._loops.append(asyncio.create_task(self._drain_loop(), name=f"{self.id}-queue-drain"))

        logger.info("Orchestrator started with %d agents", len(self._agents))
        self.events.emit(OrchestratorEvent.STARTED, self)

    async def stop(self) -> None:
        """Cancel the loops, flush pending work and stop every agent."""
        if not self._running:
            logger.debug("Orchestrator %s is not running; ignoring stop()", self.id)
            return
        logger.info("Stopping orchestrator %s", self.id)
        self._running = False

        loops, self._loops = self._loops, []
        for loop_task in loops:
            loop_task.cancel()
        await asyncio.gather(*loops, return_exceptions=True)

        self.drain_queue(len(self._queue))
        abandoned = self._replies.fail_all(
            lambda correlation_id: AgentMeshError(f"Orchestrator stopped before reply {correlation_id} arrived")
        )
        if abandoned:
            logger.warning("Abandoned %d outstanding task(s) on shutdown", abandoned)

        grace = self.config.message_timeout
        if not await self.wait_idle(grace):
            stragglers = list(self._in_flight)
            logger.warning("Cancelling %d delivery task(s) still running after %gs", len(stragglers), grace)
            for task in stragglers:
                task.cancel()
            await asyncio.gather(*stragglers, return_exceptions=True)

        await self._call_on_agents("stop")
        logger.info("Orchestrator stopped")
        self.events.emit(OrchestratorEvent.STOPPED, self)

    async def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Wait until no delivery spawned by the orchestrator is in flight.

        Returns False if deliveries are still running when ``timeout`` elapses.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while self._in_flight:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                return False
            await asyncio.wait(list(self._in_flight), timeout=remaining)
        return True

    async def _call_on_agents(self, method: str) -> None:
        agents = list(self._agents.values())
        results = await asyncio.gather(*(getattr(agent, method)() for agent in agents), return_exceptions=True)
        for agent, result in zip(agents, results):
            if isinstance(result, BaseException):
                logger.error("Error during %s of agent %s: %s", method, agent.id, result)

    # Messaging ----------------------------------------------------------------

    async def send_direct_message(
        self,
        to: str,
        *,
        message_type: MessageType = MessageType.COMMAND,
        payload: Any = None,
        priority: MessagePriority = MessagePriority.MEDIUM,
        sender: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> AgentMessage:
        message = AgentMessage(
            sender=sender or self.id,
            recipient=to,
            type=MessageType(message_type),
            payload=payload,
            priority=MessagePriority(priority),
            correlation_id=correlation_id,
        )
        self.deliver_message(to, message)
        return message

    async def broadcast_message(
        self,
        *,
        message_type: MessageType = MessageType.COMMAND,
        payload: Any = None,
        priority: MessagePriority = MessagePriority.MEDIUM,
        sender: Optional[str] = None,
    ) -> AgentMessage:
        message = AgentMessage(
            sender=sender or self.id,
            recipient=BROADCAST,
            type=MessageType(message_type),
            payload=payload,
            priority=MessagePriority(priority),
        )
        self.route_message(message)
        return message

    def route_message(self, message: AgentMessage) -> None:
        """Complete correlated replies, fan out broadcasts, deliver the rest."""
        self.events.emit(OrchestratorEvent.MESSAGE_ROUTED, message)
        resolved = self._replies.resolve(message)

        if message.recipient == BROADCAST:
            for agent_id in list(self._agents):
                if agent_id in (message.sender, self.id):
                    continue
                self.deliver_message(agent_id, message)
            return

        if message.recipient == self.id:
            if not resolved:
                logger.debug("Discarding uncorrelated message %s from %s", message.id, message.sender)
            return

        self.deliver_message(message.recipient, message)

    def deliver_message(self, to: str, message: AgentMessage) -> bool:
        """Hand ``message`` to agent ``to`` according to the delivery mode."""
        agent = self._agents.get(to)
        if agent is None:
            logger.warning("%s; dropping message %s", DeliveryError(to), message.id)
            return False

        self._dispatch(agent, message)
        return True

    def _dispatch(self, agent: Agent, message: AgentMessage) -> None:
        mode = self.config.delivery_mode
        if mode is not DeliveryMode.IMMEDIATE:
            self._queue.push(agent.id, message)
        if mode is not DeliveryMode.QUEUED:
            self._spawn(self.process_message_for_agent(agent, message))

    async def process_message_for_agent(self, agent: Agent, message: AgentMessage) -> None:
        """Invoke the agent's handler and route any response it produces."""
        try:
            response = await agent.handle(message)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Error processing message %s for agent %s", message.id, agent.id)
            self._replies.fail(message.id, exc)
            return

        if response is None:
            return
        if not isinstance(response, AgentMessage):
            logger.warning("Agent %s returned %s instead of a message; ignoring", agent.id, type(response).__name__)
            return
        self.route_message(response)

    def drain_queue(self, limit: Optional[int] = None) -> int:
        """Dispatch up to ``limit`` queued deliveries straight to their targets."""
        batch = self._queue.pop_batch(self.config.max_concurrent_agents if limit is None else limit)
        for target, message in batch:
            agent = self._agents.get(target)
            if agent is None:
                logger.warning("%s; dropping queued message %s", DeliveryError(target), message.id)
                continue
            self._spawn(self.process_message_for_agent(agent, message))
        return len(batch)

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    # Tasks and workflows ------------------------------------------------------

    async def execute_agent_task(self, agent: Agent, task: Any) -> Any:
        """Send ``task`` as a command and wait for the correlated reply payload.

        The command goes out under the configured delivery mode. Its id is the
        correlation id; the command itself carries none, so only a reply can
        complete the task.
        """
        correlation_id = new_message_id(self.id)
        reply = self._replies.open(correlation_id, agent.id, self.config.message_timeout)
        message = AgentMessage(
            id=correlation_id,
            sender=self.id,
            recipient=agent.id,
            type=MessageType.COMMAND,
            payload=task,
            priority=MessagePriority.MEDIUM,
        )
        self._dispatch(agent, message)

        response = await reply
        if response.type is MessageType.ERROR:
            raise TaskFailedError(agent.id, response.payload)
        return response.payload

    async def run_concurrent(self, operations: Iterable[Operation]) -> List[TaskOutcome]:
        """Run every ``(agent_id, task)`` pair concurrently and settle each one."""
        operations = list(operations)
        logger.info("Running %d concurrent operations", len(operations))

        async def run_one(agent_id: str, task: Any) -> Any:
            agent = self._agents.get(agent_id)
            if agent is None:
                raise AgentNotFoundError(agent_id)
            return await self.execute_agent_task(agent, task)

        settled = await asyncio.gather(
            *(run_one(agent_id, task) for agent_id, task in operations),
            return_exceptions=True,
        )

        outcomes = []
        for (agent_id, _), result in zip(operations, settled):
            if isinstance(result, BaseException):
                outcomes.append(TaskOutcome(agent_id=agent_id, status=TaskStatus.REJECTED, error=result))
            else:
                outcomes.append(TaskOutcome(agent_id=agent_id, status=TaskStatus.FULFILLED, value=result))

        failed = sum(1 for outcome in outcomes if not outcome.ok)
        logger.info("Concurrent execution complete: %d successful, %d failed", len(outcomes) - failed, failed)
        return outcomes

    async def run_workflow(self, workflow: Workflow) -> WorkflowResult:
        """Run the workflow's steps in order; a step's predicate may end it early."""
        logger.info("Starting workflow: %s", workflow.name)
        result = WorkflowResult(workflow=workflow.name)
        current: Optional[str] = None
        try:
            for step in workflow.steps:
                current = step.name
                logger.info("Executing step: %s", step.name)
                outcomes = await self.run_concurrent((agent_id, step.task) for agent_id in step.agents)
                result.steps.append(StepResult(step=step.name, results=outcomes))

                if step.completion_condition is not None and not await step.completion_condition(outcomes):
                    logger.info("Workflow %s stopped at step: %s", workflow.name, step.name)
                    result.completed = False
                    result.stopped_at = step.name
                    break
        except Exception as exc:  # noqa: BLE001
            logger.error("Workflow failed: %s", workflow.name)
            raise WorkflowError(workflow.name, current, exc) from exc

        logger.info("Workflow completed: %s", workflow.name)
        return result

    # Background loops ---------------------------------------------------------

    async def check_health(self) -> None:
        """Health-check every agent and emit transitions."""
        agents = list(self._agents.values())
        await asyncio.gather(*(self._check_agent(agent) for agent in agents))

    async def _check_agent(self, agent: Agent) -> None:
        try:
            healthy = bool(await agent.health_check())
        except Exception as exc:  # noqa: BLE001
            logger.error("%s", HealthCheckError(agent.id, exc), exc_info=exc)
            return
        if self._agents.get(agent.id) is not agent:
            return

        was_healthy = self._health.get(agent.id, True)
        self._health[agent.id] = healthy
        if was_healthy and not healthy:
            logger.warning("Agent %s (%s) is unhealthy", agent.name, agent.id)
            agent.status.health = AgentHealth.CRITICAL
            self.events.emit(OrchestratorEvent.AGENT_UNHEALTHY, agent)
        elif healthy and not was_healthy:
            logger.info("Agent %s (%s) recovered", agent.name, agent.id)
            agent.status.health = AgentHealth.HEALTHY
            self.events.emit(OrchestratorEvent.AGENT_RECOVERED, agent)

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.heartbeat_interval)
            await self.check_health()

    async def _drain_loop(self) -> None:
        while True:
            await asyncio.sleep(QUEUE_DRAIN_TICK)
            if len(self._queue):
                self.drain_queue()
