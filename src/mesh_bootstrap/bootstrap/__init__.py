"""Bootstrap package for standing up a local Istio service mesh.

A run is a sequence of stages:
1. Check prerequisites (minikube, kubectl, curl)
2. Start Minikube with the configured sizing
3. Download and install Istio plus observability addons
4. Deploy Bookinfo and expose it through the ingress gateway
5. Configure traffic management
6. Configure mTLS and authorization
7. Validate the installation
8. Write the access-info report
"""

from .cluster import ClusterProvisioner
from .context import RunContext
from .kubectl import Kubectl
from .mesh import ADDON_DEPLOYMENTS, MeshInstaller
from .orchestrator import MODE_STAGES, InvocationMode, Orchestrator, RunResult, stages_for
from .prerequisites import REQUIRED_TOOLS, PrerequisiteChecker
from .probe import PageProbe, ProbeResult
from .reporter import AccessInfo, AddonEndpoint, InfoReporter
from .security import SecurityConfigurator
from .shell import CommandResult, CommandRunner
from .stage import Stage
from .state import RunState, RunStateStore, StageState
from .traffic import TrafficConfigurator, select_destination
from .validator import Validator
from .workload import WorkloadDeployer

__all__ = [
    # Orchestration
    "InvocationMode",
    "MODE_STAGES",
    "Orchestrator",
    "RunResult",
    "stages_for",
    "RunContext",
    "Stage",
    # Stages
    "PrerequisiteChecker",
    "REQUIRED_TOOLS",
    "ClusterProvisioner",
    "MeshInstaller",
    "ADDON_DEPLOYMENTS",
    "WorkloadDeployer",
    "TrafficConfigurator",
    "select_destination",
    "SecurityConfigurator",
    "Validator",
    "InfoReporter",
    "AccessInfo",
    "AddonEndpoint",
    # External commands
    "CommandRunner",
    "CommandResult",
    "Kubectl",
    "PageProbe",
    "ProbeResult",
    # State
    "RunState",
    "RunStateStore",
    "StageState",
]
