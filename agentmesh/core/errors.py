"""Exception hierarchy for the agent runtime and orchestrator."""
from __future__ import annotations

from typing import Any, Optional


class AgentMeshError(Exception):
    """Base class for every error raised by agentmesh."""


class ConfigurationError(AgentMeshError, ValueError):
    """Raised when orchestration settings are invalid."""


class HandlerError(AgentMeshError):
    """A message handler raised while processing a message.

    Only used to give log records context; it never escapes ``process``.
    """

    def __init__(self, agent_id: str, message_type: str, cause: BaseException) -> None:
        super().__init__(f"Handler for '{message_type}' failed in agent {agent_id}: {cause}")
        self.agent_id = agent_id
        self.message_type = message_type
        self.cause = cause


class DeliveryError(AgentMeshError):
    """A message could not be delivered to its recipient."""

    def __init__(self, recipient: str, reason: str = "not registered") -> None:
        super().__init__(f"Agent {recipient} {reason}")
        self.recipient = recipient


class AgentNotFoundError(DeliveryError, KeyError):
    """No agent is registered under the requested id."""

    def __init__(self, agent_id: str) -> None:
        super().__init__(agent_id, "not found")

    def __str__(self) -> str:
        return self.args[0]


class TaskTimeoutError(AgentMeshError):
    """No correlated reply arrived within the configured message timeout."""

    def __init__(self, agent_id: str, correlation_id: str, timeout: float) -> None:
        super().__init__(f"Task timeout for agent {agent_id} after {timeout:g}s")
        self.agent_id = agent_id
        self.correlation_id = correlation_id
        self.timeout = timeout


class TaskFailedError(AgentMeshError):
    """The agent answered a task with an error message."""

    def __init__(self, agent_id: str, payload: Any) -> None:
        super().__init__(f"Agent {agent_id} reported an error: {payload}")
        self.agent_id = agent_id
        self.payload = payload


class WorkflowError(AgentMeshError):
    """A workflow aborted because its orchestration logic or predicate raised."""

    def __init__(self, workflow: str, step: Optional[str], cause: BaseException) -> None:
        where = f" at step '{step}'" if step else ""
        super().__init__(f"Workflow '{workflow}' failed{where}: {cause}")
        self.workflow = workflow
        self.step = step
        self.cause = cause


class HealthCheckError(AgentMeshError):
    """An agent's health check raised. Logged by the heartbeat, never raised."""

    def __init__(self, agent_id: str, cause: BaseException) -> None:
        super().__init__(f"Health check failed for agent {agent_id}: {cause}")
        self.agent_id = agent_id
        self.cause = cause
