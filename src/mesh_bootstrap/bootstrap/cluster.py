"""Local cluster provisioning with Minikube."""

from __future__ import annotations

from ..errors import ClusterProvisionFailure, CommandError
from .context import RunContext
from .stage import Stage
from .state import StageState

DEFAULT_ADDONS: tuple[str, ...] = ("ingress", "metrics-server")


class ClusterProvisioner(Stage):
    """(Re)start Minikube with the configured sizing and enable addons.

    An existing cluster is stopped first, so running this stage twice in a
    row succeeds both times.
    """

    name = "cluster"
    description = "Setting up Minikube cluster"
    state = StageState.CLUSTER

    def __init__(self, addons: tuple[str, ...] = DEFAULT_ADDONS):
        self.addons = addons

    def start_command(self, ctx: RunContext) -> list[str]:
        config = ctx.config
        return [
            "minikube",
            "start",
            f"--memory={config.memory_mb}",
            f"--cpus={config.cpus}",
            f"--kubernetes-version={config.kubernetes_version}",
            f"--driver={config.driver}",
        ]

    def run(self, ctx: RunContext) -> None:
        ctx.log.info("Setting up Minikube cluster for Istio...")

        # "Not running" is not an error here
        ctx.runner.run(["minikube", "stop"], check=False)

        try:
            ctx.runner.run(self.start_command(ctx))
        except CommandError as e:
            raise ClusterProvisionFailure(
                f"Minikube failed to start: {e.message}", stage=self.name
            ) from e

        for addon in self.addons:
            result = ctx.runner.run(["minikube", "addons", "enable", addon], check=False)
            if not result.ok:
                ctx.warn(self.name, f"Failed to enable addon {addon}: {result.stderr.strip()}")

        try:
            info = ctx.kubectl.run("cluster-info")
            nodes = ctx.kubectl.run("get", "nodes")
        except CommandError as e:
            raise ClusterProvisionFailure(
                f"Cluster not reachable after start: {e.message}", stage=self.name
            ) from e
        ctx.log.output(info.stdout)
        ctx.log.output(nodes.stdout)

        ctx.log.info("✓ Minikube cluster ready for Istio deployment")
