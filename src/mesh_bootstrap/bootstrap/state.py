"""Bootstrap state carried between invocations.

Each mode runs in a fresh process, so values produced by an earlier run
(the resolved gateway address, the stages that completed) are persisted in
~/.mesh-bootstrap/state.yaml for later `--validate` and `--info` runs.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path

import yaml

from ..shared.logging import get_logger
from ..shared.paths import STATE_FILE

logger = get_logger(__name__)


class StageState(Enum):
    """Progress of a run through the stage pipeline."""

    NOT_STARTED = "not_started"
    PREREQUISITES = "prerequisites"
    CLUSTER = "cluster"
    MESH = "mesh"
    WORKLOAD = "workload"
    TRAFFIC = "traffic"
    SECURITY = "security"
    VALIDATED = "validated"
    REPORTED = "reported"


@dataclass
class RunState:
    """Values persisted across invocations."""

    istio_version: str | None = None
    gateway_host: str | None = None
    gateway_port: int | None = None
    completed_stages: list[str] = field(default_factory=list)


class RunStateStore:
    """Load and save RunState as YAML."""

    def __init__(self, path: Path | None = None):
        """Initialize store.

        Args:
            path: State file (default: ~/.mesh-bootstrap/state.yaml)
        """
        self.path = path or STATE_FILE

    def load(self) -> RunState:
        """Load persisted state, or an empty state if none is readable."""
        if not self.path.exists():
            return RunState()
        try:
            with open(self.path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Ignoring unreadable state file", path=str(self.path), error=str(e))
            return RunState()

        if not isinstance(data, dict):
            logger.warning("Ignoring state file without a mapping", path=str(self.path))
            return RunState()

        port = data.get("gateway_port")
        try:
            port = int(port) if port is not None else None
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid gateway_port in state file", value=repr(port))
            port = None

        stages = data.get("completed_stages") or []
        return RunState(
            istio_version=data.get("istio_version"),
            gateway_host=data.get("gateway_host"),
            gateway_port=port,
            completed_stages=list(stages) if isinstance(stages, list) else [],
        )

    def save(self, state: RunState) -> Path:
        """Write state, replacing any previous file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            yaml.dump(asdict(state), f, default_flow_style=False, sort_keys=False)
        return self.path
