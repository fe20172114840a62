"""Simple agent that acknowledges commands, used by the demo and the HTTP API."""
from __future__ import annotations

import asyncio
from typing import List, Optional

from agentmesh.agents.base import RuntimeAgent
from agentmesh.core.models import AgentCapability, AgentKind, AgentMessage, MessageType

ECHO_CAPABILITY = AgentCapability(
    name="echo",
    description="Acknowledge commands by echoing their action",
    provides=frozenset({"echo-result"}),
)


class EchoAgent(RuntimeAgent):
    """Agent that echoes the ``action`` of each command it receives."""

    def __init__(self, agent_id: str = "echo", name: Optional[str] = None, *, delay: float = 0.0) -> None:
        super().__init__(agent_id, name or f"Echo Agent ({agent_id})", AgentKind.TOOL, [ECHO_CAPABILITY])
        self.delay = delay
        self.received: List[AgentMessage] = []
        self.processed_actions: List[str] = []
        self.runtime.register_handler(MessageType.COMMAND, self._handle_command)
        self.runtime.register_handler(MessageType.STATUS, self._handle_status_request)

    async def _handle_command(self, message: AgentMessage) -> AgentMessage:
        self.received.append(message)
        if self.delay:
            await asyncio.sleep(self.delay)  # Simulate work
        payload = message.payload if isinstance(message.payload, dict) else {}
        action = payload.get("action")
        self.processed_actions.append(action)
        return self.runtime.create_response(
            message,
            {"success": True, "action": action, "result": "processed", "agent": self.id},
        )

    async def _handle_status_request(self, message: AgentMessage) -> AgentMessage:
        return self.runtime.create_response(
            message,
            {
                "agent": self.name,
                "status": self.status.to_dict(),
                "capabilities": [capability.to_dict() for capability in self.capabilities],
                "metrics": self.get_metrics(),
            },
        )
