"""Tests for configuration loading and runtime composition."""
from __future__ import annotations

import json

import pytest

from agentmesh.agents.echo import EchoAgent
from agentmesh.config import DeliveryMode, OrchestrationConfig
from agentmesh.core.errors import ConfigurationError
from agentmesh.runtime import build_agents, build_orchestrator


def test_defaults() -> None:
    settings = OrchestrationConfig()
    assert settings.max_concurrent_agents == 5
    assert settings.heartbeat_interval == 5.0
    assert settings.message_timeout == 30.0
    assert settings.retry_attempts == 3
    assert settings.orchestrator_id == "orchestrator"
    assert settings.delivery_mode is DeliveryMode.IMMEDIATE
    assert settings.agent_ids() == ("echo",)


@pytest.mark.parametrize(
    "overrides",
    [
        {"max_concurrent_agents": 0},
        {"heartbeat_interval": 0},
        {"message_timeout": -1},
        {"retry_attempts": -1},
        {"orchestrator_id": ""},
        {"delivery_mode": "sometimes"},
        {"agents": ("echo:orchestrator",)},
    ],
)
def test_invalid_settings_are_rejected(overrides: dict) -> None:
    with pytest.raises(ConfigurationError):
        OrchestrationConfig(**overrides)


def test_from_env_coerces_values() -> None:
    settings = OrchestrationConfig.from_env(
        {
            "AGENTMESH_HEARTBEAT_INTERVAL": "0.5",
            "AGENTMESH_MAX_CONCURRENT_AGENTS": "10",
            "AGENTMESH_ENABLE_MONITORING": "false",
            "AGENTMESH_AGENTS": "echo:a, echo:b",
            "AGENTMESH_DELIVERY_MODE": "queued",
            "UNRELATED": "ignored",
        }
    )
    assert settings.heartbeat_interval == 0.5
    assert settings.max_concurrent_agents == 10
    assert settings.enable_monitoring is False
    assert settings.agents == ("echo:a", "echo:b")
    assert settings.agent_ids() == ("a", "b")
    assert settings.delivery_mode is DeliveryMode.QUEUED


def test_from_env_rejects_malformed_numbers() -> None:
    with pytest.raises(ConfigurationError):
        OrchestrationConfig.from_env({"AGENTMESH_MESSAGE_TIMEOUT": "soon"})


def test_from_file_with_environment_precedence(tmp_path) -> None:
    path = tmp_path / "agentmesh.json"
    path.write_text(
        json.dumps({"message_timeout": 12, "agents": ["echo:x"], "orchestrator_id": "hub", "unknown": 1}),
        encoding="utf-8",
    )

    settings = OrchestrationConfig.from_file(path, environ={"AGENTMESH_ORCHESTRATOR_ID": "main"})

    assert settings.message_timeout == 12.0
    assert settings.agents == ("echo:x",)
    assert settings.orchestrator_id == "main"


def test_from_file_errors(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        OrchestrationConfig.from_file(tmp_path / "missing.json", environ={})

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        OrchestrationConfig.from_file(broken, environ={})

    listing = tmp_path / "list.json"
    listing.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        OrchestrationConfig.from_file(listing, environ={})


def test_build_agents_from_declared_entries() -> None:
    agents = build_agents(OrchestrationConfig(agents=("echo", "echo:beta")))
    assert [agent.id for agent in agents] == ["echo", "beta"]
    assert all(isinstance(agent, EchoAgent) for agent in agents)

    with pytest.raises(KeyError):
        build_agents(OrchestrationConfig(agents=("crawler",)))


def test_build_orchestrator_registers_declared_agents() -> None:
    orchestrator = build_orchestrator(OrchestrationConfig(agents=("echo:a", "echo:b")))
    assert [agent.id for agent in orchestrator.list_agents()] == ["a", "b"]
