"""HTTP API exposing orchestrator capabilities."""
from __future__ import annotations

from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from agentmesh.core.errors import WorkflowError
from agentmesh.core.models import MessagePriority, MessageType
from agentmesh.orchestration.orchestrator import Orchestrator
from agentmesh.orchestration.workflow import Workflow, WorkflowStep
from agentmesh.runtime import get_orchestrator

router = APIRouter(tags=["agents"])


class CapabilityResponse(BaseModel):
    name: str
    description: str
    dependencies: List[str]
    provides: List[str]


class AgentStatusResponse(BaseModel):
    id: str
    name: str
    status: str
    health: str
    last_activity: str
    metrics: dict


class AgentDetailResponse(BaseModel):
    id: str
    name: str
    kind: str
    status: AgentStatusResponse
    capabilities: List[CapabilityResponse]
    metrics: dict


class MessageRequest(BaseModel):
    type: MessageType = Field(default=MessageType.COMMAND, description="Handler bucket on the receiver")
    payload: Any = None
    priority: MessagePriority = MessagePriority.MEDIUM
    sender: Optional[str] = Field(default=None, description="Defaults to the orchestrator id")


class MessageAccepted(BaseModel):
    id: str
    to: str


class Operation(BaseModel):
    agent_id: str
    task: Any = None


class TaskRequest(BaseModel):
    operations: List[Operation]


class OutcomeResponse(BaseModel):
    agent_id: str
    status: str
    value: Any = None
    error: Optional[str] = None


class StepRequest(BaseModel):
    name: str
    agents: List[str]
    task: Any = None


class WorkflowRequest(BaseModel):
    name: str
    description: str = ""
    steps: List[StepRequest]


class StepResponse(BaseModel):
    step: str
    results: List[OutcomeResponse]


class WorkflowResponse(BaseModel):
    workflow: str
    steps: List[StepResponse]
    completed: bool
    stopped_at: Optional[str] = None


@router.get("/agents", response_model=List[AgentStatusResponse])
async def list_agents(orchestrator: Orchestrator = Depends(get_orchestrator)) -> List[AgentStatusResponse]:
    return [AgentStatusResponse(**agent_status.to_dict()) for agent_status in orchestrator.get_agent_statuses()]


@router.get("/agents/{agent_id}", response_model=AgentDetailResponse)
async def get_agent(agent_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)) -> AgentDetailResponse:
    agent = orchestrator.get_agent(agent_id)
    if agent is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown agent")
    return AgentDetailResponse(
        id=agent.id,
        name=agent.name,
        kind=agent.kind.value,
        status=AgentStatusResponse(**agent.status.to_dict()),
        capabilities=[CapabilityResponse(**capability.to_dict()) for capability in agent.capabilities],
        metrics=agent.get_metrics(),
    )


@router.post("/agents/{agent_id}/messages", response_model=MessageAccepted, status_code=status.HTTP_202_ACCEPTED)
async def send_message(
    agent_id: str,
    request: MessageRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> MessageAccepted:
    if orchestrator.get_agent(agent_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown agent")
    message = await orchestrator.send_direct_message(
        agent_id,
        message_type=request.type,
        payload=request.payload,
        priority=request.priority,
        sender=request.sender,
    )
    return MessageAccepted(id=message.id, to=message.recipient)


@router.post("/broadcast", response_model=MessageAccepted, status_code=status.HTTP_202_ACCEPTED)
async def broadcast(request: MessageRequest, orchestrator: Orchestrator = Depends(get_orchestrator)) -> MessageAccepted:
    message = await orchestrator.broadcast_message(
        message_type=request.type,
        payload=request.payload,
        priority=request.priority,
        sender=request.sender,
    )
    return MessageAccepted(id=message.id, to=message.recipient)


@router.post("/tasks", response_model=List[OutcomeResponse])
async def run_tasks(request: TaskRequest, orchestrator: Orchestrator = Depends(get_orchestrator)) -> List[OutcomeResponse]:
    outcomes = await orchestrator.run_concurrent((op.agent_id, op.task) for op in request.operations)
    return [OutcomeResponse(**outcome.to_dict()) for outcome in outcomes]


@router.post("/workflows", response_model=WorkflowResponse)
async def run_workflow(request: WorkflowRequest, orchestrator: Orchestrator = Depends(get_orchestrator)) -> WorkflowResponse:
    workflow = Workflow(
        name=request.name,
        description=request.description,
        steps=[WorkflowStep(name=step.name, agents=step.agents, task=step.task) for step in request.steps],
    )
    try:
        result = await orchestrator.run_workflow(workflow)
    except WorkflowError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    return WorkflowResponse(**result.to_dict())
