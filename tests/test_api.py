"""Tests for the HTTP control surface."""
from __future__ import annotations

import httpx
import pytest
from fastapi import FastAPI

from agentmesh.agents.echo import EchoAgent
from agentmesh.api.routes import router
from agentmesh.main import app as main_app
from agentmesh.orchestration.orchestrator import Orchestrator
from agentmesh.runtime import get_orchestrator


@pytest.fixture
def api_orchestrator(orchestrator: Orchestrator) -> Orchestrator:
    orchestrator.register_agent(EchoAgent("alpha"))
    orchestrator.register_agent(EchoAgent("beta"))
    return orchestrator


@pytest.fixture
def client(api_orchestrator: Orchestrator) -> httpx.AsyncClient:
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_orchestrator] = lambda: api_orchestrator
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


@pytest.mark.anyio
async def test_list_and_get_agents(client: httpx.AsyncClient) -> None:
    async with client:
        response = await client.get("/agents")
        assert response.status_code == 200
        assert [agent["id"] for agent in response.json()] == ["alpha", "beta"]
        assert response.json()[0]["status"] == "idle"

        detail = await client.get("/agents/alpha")
        assert detail.status_code == 200
        body = detail.json()
        assert body["kind"] == "tool"
        assert body["capabilities"][0]["name"] == "echo"
        assert "uptime" in body["metrics"]

        missing = await client.get("/agents/nobody")
        assert missing.status_code == 404


@pytest.mark.anyio
async def test_send_message_and_broadcast(client: httpx.AsyncClient, api_orchestrator: Orchestrator) -> None:
    async with client:
        response = await client.post("/agents/alpha/messages", json={"payload": {"action": "ping"}})
        assert response.status_code == 202
        assert response.json()["to"] == "alpha"

        missing = await client.post("/agents/nobody/messages", json={"payload": {}})
        assert missing.status_code == 404

        broadcast = await client.post("/broadcast", json={"payload": {"action": "all"}, "sender": "alpha"})
        assert broadcast.status_code == 202
        assert broadcast.json()["to"] == "broadcast"

    await api_orchestrator.wait_idle()
    alpha = api_orchestrator.get_agent("alpha")
    beta = api_orchestrator.get_agent("beta")
    assert alpha.processed_actions == ["ping"]
    assert beta.processed_actions == ["all"]


@pytest.mark.anyio
async def test_run_tasks(client: httpx.AsyncClient) -> None:
    async with client:
        response = await client.post(
            "/tasks",
            json={"operations": [{"agent_id": "alpha", "task": {"action": "a"}}, {"agent_id": "ghost"}]},
        )
    assert response.status_code == 200
    first, second = response.json()
    assert first["status"] == "fulfilled"
    assert first["value"]["action"] == "a"
    assert second["status"] == "rejected"
    assert "ghost" in second["error"]


@pytest.mark.anyio
async def test_run_workflow(client: httpx.AsyncClient) -> None:
    async with client:
        response = await client.post(
            "/workflows",
            json={
                "name": "nightly",
                "steps": [
                    {"name": "scan", "agents": ["alpha", "beta"], "task": {"action": "scan"}},
                    {"name": "report", "agents": ["alpha"], "task": {"action": "report"}},
                ],
            },
        )
    assert response.status_code == 200
    body = response.json()
    assert body["workflow"] == "nightly"
    assert body["completed"] is True
    assert [step["step"] for step in body["steps"]] == ["scan", "report"]
    assert [r["status"] for r in body["steps"][0]["results"]] == ["fulfilled", "fulfilled"]


@pytest.mark.anyio
async def test_health_endpoint() -> None:
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=main_app), base_url="http://testserver") as client:
        response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
