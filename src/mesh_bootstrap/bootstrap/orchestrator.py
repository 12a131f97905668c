"""Invocation modes and the orchestrator that runs their stages in order."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ..errors import BootstrapError, SoftWarning
from .cluster import ClusterProvisioner
from .context import RunContext
from .mesh import MeshInstaller
from .prerequisites import PrerequisiteChecker
from .reporter import InfoReporter
from .security import SecurityConfigurator
from .stage import Stage
from .traffic import TrafficConfigurator
from .validator import Validator
from .workload import WorkloadDeployer


class InvocationMode(Enum):
    """What a single invocation runs."""

    FULL = "full"
    CLUSTER_ONLY = "cluster-only"
    MESH_ONLY = "mesh-only"
    DEPLOY_ONLY = "deploy-only"
    CONFIGURE_ONLY = "configure-only"
    VALIDATE_ONLY = "validate-only"
    INFO_ONLY = "info-only"
    HELP = "help"


FULL_PIPELINE: tuple[type[Stage], ...] = (
    PrerequisiteChecker,
    ClusterProvisioner,
    MeshInstaller,
    WorkloadDeployer,
    TrafficConfigurator,
    SecurityConfigurator,
    Validator,
    InfoReporter,
)

MODE_STAGES: dict[InvocationMode, tuple[type[Stage], ...]] = {
    InvocationMode.FULL: FULL_PIPELINE,
    InvocationMode.CLUSTER_ONLY: (PrerequisiteChecker, ClusterProvisioner),
    InvocationMode.MESH_ONLY: (MeshInstaller,),
    InvocationMode.DEPLOY_ONLY: (WorkloadDeployer,),
    InvocationMode.CONFIGURE_ONLY: (TrafficConfigurator, SecurityConfigurator),
    InvocationMode.VALIDATE_ONLY: (Validator,),
    InvocationMode.INFO_ONLY: (InfoReporter,),
    InvocationMode.HELP: (),
}


def stages_for(mode: InvocationMode) -> list[Stage]:
    """Instantiate the ordered stages of a mode."""
    return [stage_cls() for stage_cls in MODE_STAGES[mode]]


@dataclass
class RunResult:
    """Outcome of a successful orchestrator run."""

    mode: InvocationMode
    completed: list[str] = field(default_factory=list)
    warnings: list[SoftWarning] = field(default_factory=list)


class Orchestrator:
    """Run stages strictly in order, stopping at the first fatal error.

    There is no rollback: a failed run leaves the cluster in whatever state
    the external systems reached.
    """

    def __init__(self, ctx: RunContext):
        self.ctx = ctx

    def run(self, mode: InvocationMode, stages: list[Stage] | None = None) -> RunResult:
        """Run a mode.

        Args:
            mode: Invocation mode.
            stages: Override the mode's stages (used by tests).

        Returns:
            RunResult listing completed stages and warnings.

        Raises:
            BootstrapError: A stage failed; later stages did not run.
        """
        ctx = self.ctx
        stages = stages if stages is not None else stages_for(mode)

        if mode == InvocationMode.FULL:
            ctx.log.info("=== Starting complete Istio setup ===")

        for stage in stages:
            try:
                stage.run(ctx)
            except BootstrapError as e:
                if e.stage is None:
                    e.stage = stage.name
                ctx.log.error(f"Stage {stage.name} failed: {e}")
                raise
            ctx.mark_completed(stage.name, stage.state)

        if mode == InvocationMode.FULL:
            ctx.log.info("=== Istio service mesh setup completed successfully ===")
        elif stages:
            ctx.log.info(f"=== {mode.value} completed successfully ===")

        return RunResult(mode=mode, completed=list(ctx.completed), warnings=list(ctx.warnings))
