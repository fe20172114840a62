"""CLI demonstration of orchestrator messaging, tasks and workflows."""
from __future__ import annotations

import asyncio
from typing import List

from agentmesh.agents.echo import EchoAgent
from agentmesh.config import OrchestrationConfig, configure_logging
from agentmesh.core.events import OrchestratorEvent
from agentmesh.orchestration.orchestrator import Orchestrator
from agentmesh.orchestration.workflow import TaskOutcome, Workflow, WorkflowStep


async def all_succeeded(results: List[TaskOutcome]) -> bool:
    return all(outcome.ok for outcome in results)


async def main() -> None:
    settings = OrchestrationConfig(heartbeat_interval=0.5, message_timeout=2.0)
    configure_logging(settings)

    orchestrator = Orchestrator(settings)
    orchestrator.events.subscribe(OrchestratorEvent.AGENT_REGISTERED, lambda agent: print(f"Registered {agent.id}"))
    alpha = EchoAgent("alpha", delay=0.05)
    beta = EchoAgent("beta", delay=0.05)
    orchestrator.register_agent(alpha)
    orchestrator.register_agent(beta)
    await orchestrator.start()

    await orchestrator.send_direct_message("alpha", payload={"action": "ping"})
    await orchestrator.broadcast_message(payload={"action": "hello"})
    await orchestrator.wait_idle()
    print(f"alpha processed {alpha.processed_actions}, beta processed {beta.processed_actions}")

    outcomes = await orchestrator.run_concurrent(
        [("alpha", {"action": "task-1"}), ("beta", {"action": "task-2"}), ("missing", {"action": "task-3"})]
    )
    for outcome in outcomes:
        print(f"{outcome.agent_id}: {outcome.status.value} {outcome.value or outcome.error}")

    result = await orchestrator.run_workflow(
        Workflow(
            name="demo",
            description="Two-step fan-out",
            steps=[
                WorkflowStep(name="scan", agents=["alpha", "beta"], task={"action": "scan"}, completion_condition=all_succeeded),
                WorkflowStep(name="report", agents=["alpha"], task={"action": "report"}),
            ],
        )
    )
    print(f"Workflow {result.workflow} completed={result.completed} steps={[step.step for step in result.steps]}")

    for agent_status in orchestrator.get_agent_statuses():
        print(f"{agent_status.id}: {agent_status.status.value} {agent_status.health.value} {agent_status.metrics}")

    await orchestrator.stop()
    print("Orchestrator stopped")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
