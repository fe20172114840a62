"""Configuration management for the orchestrator."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from agentmesh.core.errors import ConfigurationError

ENV_PREFIX = "AGENTMESH_"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class DeliveryMode(str, Enum):
    """How ``deliver_message`` reaches a registered agent."""

    IMMEDIATE = "immediate"
    QUEUED = "queued"
    AT_LEAST_ONCE = "at_least_once"


@dataclass(frozen=True)
class OrchestrationConfig:
    """Settings consumed by the orchestrator. Durations are in seconds."""

    max_concurrent_agents: int = 5
    heartbeat_interval: float = 5.0
    message_timeout: float = 30.0
    retry_attempts: int = 3
    enable_monitoring: bool = True
    enable_logging: bool = True
    agents: Tuple[str, ...] = ("echo",)
    orchestrator_id: str = "orchestrator"
    delivery_mode: DeliveryMode = DeliveryMode.IMMEDIATE
    start_agents: bool = True

    def __post_init__(self) -> None:
        # Frozen dataclass: normalise through object.__setattr__.
        object.__setattr__(self, "agents", tuple(self.agents))
        try:
            object.__setattr__(self, "delivery_mode", DeliveryMode(self.delivery_mode))
        except ValueError as exc:
            raise ConfigurationError(f"Unknown delivery mode: {self.delivery_mode!r}") from exc

        if self.max_concurrent_agents < 1:
            raise ConfigurationError("max_concurrent_agents must be at least 1")
        if self.heartbeat_interval <= 0:
            raise ConfigurationError("heartbeat_interval must be positive")
        if self.message_timeout <= 0:
            raise ConfigurationError("message_timeout must be positive")
        if self.retry_attempts < 0:
            raise ConfigurationError("retry_attempts cannot be negative")
        if not self.orchestrator_id:
            raise ConfigurationError("orchestrator_id cannot be empty")
        if self.orchestrator_id in self.agent_ids():
            raise ConfigurationError(f"Agent id {self.orchestrator_id!r} is reserved for the orchestrator")

    def agent_ids(self) -> Tuple[str, ...]:
        """Ids of the declared agents (``role`` or ``role:agent_id`` entries)."""
        return tuple(entry.partition(":")[2] or entry for entry in self.agents)

    def with_overrides(self, **overrides: Any) -> OrchestrationConfig:
        return replace(self, **overrides)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> OrchestrationConfig:
        """Build a config from a mapping, ignoring unknown keys."""
        known = {f.name: f for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, raw in data.items():
            if key not in known:
                continue
            values[key] = _coerce(key, raw, known[key].default)
        return cls(**values)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> OrchestrationConfig:
        """Load configuration from ``AGENTMESH_*`` environment variables."""
        return cls.from_mapping(_env_values(os.environ if environ is None else environ))

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        environ: Optional[Mapping[str, str]] = None,
    ) -> OrchestrationConfig:
        """Load a JSON config file; environment variables take precedence."""
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigurationError(f"Cannot read config file {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Invalid JSON in config file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a JSON object")
        merged = {**data, **_env_values(os.environ if environ is None else environ)}
        return cls.from_mapping(merged)


def _env_values(environ: Mapping[str, str]) -> Dict[str, str]:
    values = {}
    for field in fields(OrchestrationConfig):
        raw = environ.get(f"{ENV_PREFIX}{field.name.upper()}")
        if raw is not None:
            values[field.name] = raw
    return values


def _coerce(key: str, raw: Any, default: Any) -> Any:
    try:
        if isinstance(default, bool):
            if isinstance(raw, str):
                return raw.strip().lower() in {"1", "true", "yes", "on"}
            return bool(raw)
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
        if isinstance(default, tuple):
            if isinstance(raw, str):
                return tuple(item.strip() for item in raw.split(",") if item.strip())
            return tuple(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid value for {key}: {raw!r}") from exc
    return raw


def configure_logging(settings: OrchestrationConfig) -> None:
    """Install a basic handler; INFO when logging is enabled, WARNING otherwise."""
    level = logging.INFO if settings.enable_logging else logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("agentmesh").setLevel(level)


# Global config instance
config = OrchestrationConfig.from_env()
