"""Run context threaded through every stage.

Holds the configuration plus the values produced by earlier stages (the
gateway address) so later stages read them explicitly instead of through
process-wide variables.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..config import BootstrapConfig
from ..errors import ConfigError, SoftWarning
from ..shared.logging import RunLog
from .kubectl import Kubectl
from .shell import CommandRunner
from .state import RunStateStore, StageState


@dataclass
class RunContext:
    """Mutable state of a single orchestrator run."""

    config: BootstrapConfig
    runner: CommandRunner
    kubectl: Kubectl
    log: RunLog
    state_store: RunStateStore | None = None
    gateway_host: str | None = None
    gateway_port: int | None = None
    stage_state: StageState = StageState.NOT_STARTED
    completed: list[str] = field(default_factory=list)
    warnings: list[SoftWarning] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        config: BootstrapConfig,
        log: RunLog | None = None,
        state_store: RunStateStore | None = None,
        runner: CommandRunner | None = None,
    ) -> RunContext:
        """Build a context, restoring values persisted by earlier runs.

        Raises:
            ConfigError: The work directory does not exist and cannot be created.
        """
        try:
            config.work_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigError(f"Cannot create work directory {config.work_dir}: {e}") from e

        runner = runner or CommandRunner(cwd=config.work_dir)
        if config.istio_bin_dir.is_dir():
            runner.add_to_path(config.istio_bin_dir)

        ctx = cls(
            config=config,
            runner=runner,
            kubectl=Kubectl(runner),
            log=log or RunLog(),
            state_store=state_store,
        )
        if state_store is not None:
            persisted = state_store.load()
            ctx.gateway_host = persisted.gateway_host
            ctx.gateway_port = persisted.gateway_port
        return ctx

    @property
    def gateway_url(self) -> str | None:
        """host:port of the ingress gateway, once resolved."""
        if not self.gateway_host or self.gateway_port is None:
            return None
        return f"{self.gateway_host}:{self.gateway_port}"

    def warn(self, stage: str, message: str) -> SoftWarning:
        """Record a non-fatal condition and keep going."""
        warning = SoftWarning(stage=stage, message=message)
        self.warnings.append(warning)
        self.log.warning(f"⚠ Warning: {message}", stage=stage)
        return warning

    def mark_completed(self, stage_name: str, state: StageState) -> None:
        """Advance the pipeline state and persist what later runs need."""
        self.completed.append(stage_name)
        self.stage_state = state
        if self.state_store is None:
            return
        persisted = self.state_store.load()
        persisted.istio_version = self.config.istio_version
        persisted.gateway_host = self.gateway_host
        persisted.gateway_port = self.gateway_port
        if stage_name not in persisted.completed_stages:
            persisted.completed_stages.append(stage_name)
        self.state_store.save(persisted)

