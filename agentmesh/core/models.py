"""Core data models shared across orchestrator components."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

BROADCAST = "broadcast"


class MessageType(str, Enum):
    """Selects the handler bucket on the receiving agent."""

    COMMAND = "command"
    RESPONSE = "response"
    DATA = "data"
    STATUS = "status"
    ERROR = "error"
    HEARTBEAT = "heartbeat"


class MessagePriority(str, Enum):
    """Advisory priority. Carried and forwarded, never used for scheduling."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AgentKind(str, Enum):
    TOOL = "tool"
    ORCHESTRATOR = "orchestrator"
    MONITOR = "monitor"
    PROCESSOR = "processor"


class AgentState(str, Enum):
    """Lifecycle states reported in an agent's status record."""

    IDLE = "idle"
    RUNNING = "running"
    BUSY = "busy"
    ERROR = "error"
    PAUSED = "paused"


class AgentHealth(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    CRITICAL = "critical"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_message_id(prefix: str = "msg") -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


@dataclass(frozen=True, slots=True)
class AgentMessage:
    """Canonical envelope exchanged between the orchestrator and its agents."""

    sender: str
    recipient: str
    type: MessageType
    payload: Any = None
    priority: MessagePriority = MessagePriority.MEDIUM
    correlation_id: Optional[str] = None
    id: str = field(default_factory=new_message_id)
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def is_broadcast(self) -> bool:
        return self.recipient == BROADCAST

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "from": self.sender,
            "to": self.recipient,
            "type": self.type.value,
            "payload": self.payload,
            "timestamp": self.timestamp.isoformat(),
            "priority": self.priority.value,
            "correlation_id": self.correlation_id,
        }


@dataclass(frozen=True, slots=True)
class AgentCapability:
    """Descriptive metadata about what an agent can do."""

    name: str
    description: str
    dependencies: FrozenSet[str] = frozenset()
    provides: FrozenSet[str] = frozenset()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "dependencies": sorted(self.dependencies),
            "provides": sorted(self.provides),
        }


@dataclass(slots=True)
class AgentStatus:
    """Live status record owned by an agent's runtime."""

    id: str
    name: str
    status: AgentState = AgentState.IDLE
    last_activity: datetime = field(default_factory=utcnow)
    health: AgentHealth = AgentHealth.HEALTHY
    metrics: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "last_activity": self.last_activity.isoformat(),
            "health": self.health.value,
            "metrics": dict(self.metrics),
        }
