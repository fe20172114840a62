"""Result and workflow definitions used by concurrent task execution."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence


class TaskStatus(str, Enum):
    FULFILLED = "fulfilled"
    REJECTED = "rejected"


@dataclass(slots=True)
class TaskOutcome:
    """Settled result of one operation passed to ``run_concurrent``."""

    agent_id: str
    status: TaskStatus
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status is TaskStatus.FULFILLED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "status": self.status.value,
            "value": self.value,
            "error": str(self.error) if self.error is not None else None,
        }


CompletionCondition = Callable[[List[TaskOutcome]], Awaitable[bool]]


@dataclass(slots=True)
class WorkflowStep:
    """One fan-out: every agent in ``agents`` receives ``task`` concurrently."""

    name: str
    agents: Sequence[str]
    task: Any = None
    completion_condition: Optional[CompletionCondition] = None


@dataclass(slots=True)
class Workflow:
    name: str
    steps: Sequence[WorkflowStep]
    description: str = ""


@dataclass(slots=True)
class StepResult:
    step: str
    results: List[TaskOutcome]

    def to_dict(self) -> Dict[str, Any]:
        return {"step": self.step, "results": [outcome.to_dict() for outcome in self.results]}


@dataclass(slots=True)
class WorkflowResult:
    workflow: str
    steps: List[StepResult] = field(default_factory=list)
    completed: bool = True
    stopped_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflow": self.workflow,
            "steps": [step.to_dict() for step in self.steps],
            "completed": self.completed,
            "stopped_at": self.stopped_at,
        }
