"""Error taxonomy for the bootstrap orchestrator.

Fatal conditions are exceptions derived from BootstrapError and abort the run.
Non-fatal conditions are recorded as SoftWarning values and execution continues.
"""

from dataclasses import dataclass, field


@dataclass
class BootstrapError(Exception):
    """Base error class for fatal bootstrap errors."""

    message: str
    stage: str | None = None

    def __str__(self) -> str:
        return self.message


@dataclass
class ConfigError(BootstrapError):
    """Invalid configuration value."""


@dataclass
class CommandError(BootstrapError):
    """An external command exited non-zero."""

    command: list[str] = field(default_factory=list)
    returncode: int | None = None
    stderr: str = ""


@dataclass
class CommandTimeout(CommandError):
    """An external command did not finish within its bound."""

    timeout_seconds: float | None = None


@dataclass
class MissingDependency(BootstrapError):
    """One or more required executables are not on PATH."""

    message: str = "Missing required tools"
    missing: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        if not self.missing:
            return self.message
        return f"{self.message}: {' '.join(self.missing)}"


@dataclass
class ClusterProvisionFailure(BootstrapError):
    """The local cluster could not be started or reached."""

    message: str = "Cluster could not be started"


@dataclass
class InstallFailure(BootstrapError):
    """Control plane or addon installation failed or timed out."""

    message: str = "Istio installation failed"


@dataclass
class DeploymentReadinessTimeout(BootstrapError):
    """Workload deployments did not become available in time."""

    message: str = "Deployments not available within timeout"


@dataclass
class SoftWarning:
    """A non-fatal condition that was logged while the run continued."""

    stage: str
    message: str
