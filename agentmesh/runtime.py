"""Application runtime composition helpers."""
from __future__ import annotations

from functools import lru_cache
from typing import Callable, Dict, List

from agentmesh.agents.base import Agent
from agentmesh.agents.echo import EchoAgent
from agentmesh.config import OrchestrationConfig, config, configure_logging
from agentmesh.orchestration.orchestrator import Orchestrator

AgentFactory = Callable[[str], Agent]

_AGENT_CATALOG: Dict[str, AgentFactory] = {
    "echo": EchoAgent,
}


@lru_cache
def get_config() -> OrchestrationConfig:
    return config


def build_agents(settings: OrchestrationConfig, catalog: Dict[str, AgentFactory] = _AGENT_CATALOG) -> List[Agent]:
    """Instantiate the declared agents; entries are ``role`` or ``role:agent_id``."""
    agents = []
    for entry in settings.agents:
        role, _, agent_id = entry.partition(":")
        if role not in catalog:
            raise KeyError(f"No agent registered for role '{role}'")
        agents.append(catalog[role](agent_id or role))
    return agents


def build_orchestrator(settings: OrchestrationConfig) -> Orchestrator:
    orchestrator = Orchestrator(settings)
    for agent in build_agents(settings):
        orchestrator.register_agent(agent)
    return orchestrator


@lru_cache
def get_orchestrator() -> Orchestrator:
    settings = get_config()
    configure_logging(settings)
    return build_orchestrator(settings)
