"""Post-install validation.

A diagnostic pass: every finding is logged as a warning and the stage always
completes.
"""

from __future__ import annotations

from typing import Any

from ..errors import CommandError
from .context import RunContext
from .stage import Stage
from .state import StageState

SIDECAR_CONTAINER = "istio-proxy"


def count_not_running(pods: list[dict[str, Any]]) -> int:
    """Count pods whose phase is anything other than Running."""
    return sum(1 for pod in pods if pod.get("status", {}).get("phase") != "Running")


def count_sidecars(pods: list[dict[str, Any]], container: str = SIDECAR_CONTAINER) -> int:
    """Count injected sidecar containers across pod specs."""
    return sum(
        1
        for pod in pods
        for c in pod.get("spec", {}).get("containers", [])
        if c.get("name") == container
    )


class Validator(Stage):
    """Report control plane health, sidecar coverage and mTLS status."""

    name = "validate"
    description = "Validating Istio installation"
    state = StageState.VALIDATED

    def run(self, ctx: RunContext) -> None:
        ctx.log.info("Validating Istio installation...")

        self.check_system_pods(ctx)
        self.check_sidecars(ctx)
        self.check_mtls(ctx)

        ctx.log.info("✓ Istio installation validation completed")

    def check_system_pods(self, ctx: RunContext) -> None:
        namespace = ctx.config.istio_namespace
        try:
            pods = ctx.kubectl.list_pods(namespace)
        except CommandError as e:
            ctx.warn(self.name, f"Could not list pods in {namespace}: {e.message}")
            return

        not_running = count_not_running(pods)
        if not_running > 0:
            ctx.warn(self.name, f"{not_running} pods not running in {namespace}")
            listing = ctx.kubectl.run("get", "pods", "-n", namespace, check=False)
            ctx.log.output(listing.stdout or listing.stderr)

    def check_sidecars(self, ctx: RunContext) -> None:
        namespace = ctx.config.app_namespace
        try:
            pods = ctx.kubectl.list_pods(namespace)
        except CommandError as e:
            ctx.warn(self.name, f"Could not list pods in {namespace}: {e.message}")
            return

        injected = count_sidecars(pods)
        ctx.log.info(f"Sidecar proxies injected: {injected}")
        if injected == 0:
            ctx.warn(self.name, f"No {SIDECAR_CONTAINER} sidecars found in {namespace}")

    def check_mtls(self, ctx: RunContext) -> None:
        target = f"productpage.{ctx.config.app_namespace}.svc.cluster.local"
        try:
            result = ctx.runner.run(["istioctl", "authn", "tls-check", target], check=False)
        except CommandError as e:
            ctx.warn(self.name, f"mTLS check could not run: {e.message}")
            return

        ctx.log.output(result.stdout or result.stderr)
        if not result.ok:
            ctx.warn(self.name, f"mTLS check for {target} failed (exit {result.returncode})")
