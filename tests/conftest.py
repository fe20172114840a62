"""Shared fixtures and helper agents for the test-suite."""
from __future__ import annotations

import asyncio
from typing import Iterable, List, Optional

import pytest

from agentmesh.agents.base import RuntimeAgent
from agentmesh.agents.echo import EchoAgent
from agentmesh.config import OrchestrationConfig
from agentmesh.core.models import AgentMessage, MessageType
from agentmesh.orchestration.orchestrator import Orchestrator


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class RecorderAgent(RuntimeAgent):
    """Records every message it receives and never replies."""

    def __init__(self, agent_id: str) -> None:
        super().__init__(agent_id, f"Recorder {agent_id}")
        self.received: List[AgentMessage] = []
        for message_type in MessageType:
            self.runtime.register_handler(message_type, self._record)

    async def _record(self, message: AgentMessage) -> None:
        self.received.append(message)
        return None


class FailingAgent(RuntimeAgent):
    """Raises from ``handle`` itself, bypassing the runtime's handler isolation."""

    async def handle(self, message: AgentMessage) -> Optional[AgentMessage]:
        raise RuntimeError("boom")


class ErrorReplyAgent(RuntimeAgent):
    """Answers every command with an error message."""

    def __init__(self, agent_id: str = "erroring") -> None:
        super().__init__(agent_id, "Error Reply Agent")
        self.runtime.register_handler(MessageType.COMMAND, self._reject)

    async def _reject(self, message: AgentMessage) -> AgentMessage:
        return self.runtime.create_response(message, "bad input", MessageType.ERROR)


class HungAgent(RuntimeAgent):
    """Accepts commands and never finishes handling them."""

    def __init__(self, agent_id: str = "hung") -> None:
        super().__init__(agent_id, "Hung Agent")
        self.runtime.register_handler(MessageType.COMMAND, self._hang)

    async def _hang(self, message: AgentMessage) -> None:
        await asyncio.Event().wait()


class ScriptedHealthAgent(RuntimeAgent):
    """Reports a scripted sequence of health verdicts, then repeats the last one."""

    def __init__(self, agent_id: str, verdicts: Iterable[bool]) -> None:
        super().__init__(agent_id, f"Scripted {agent_id}")
        self._verdicts = list(verdicts)
        self.checks = 0

    async def health_check(self) -> bool:
        index = min(self.checks, len(self._verdicts) - 1)
        self.checks += 1
        return self._verdicts[index]


@pytest.fixture
def settings() -> OrchestrationConfig:
    return OrchestrationConfig(
        heartbeat_interval=0.1,
        message_timeout=1.0,
        orchestrator_id="orchestrator",
    )


@pytest.fixture
def orchestrator(settings: OrchestrationConfig) -> Orchestrator:
    return Orchestrator(settings)


@pytest.fixture
def mock_agent() -> EchoAgent:
    return EchoAgent("mock", "Mock Agent")
