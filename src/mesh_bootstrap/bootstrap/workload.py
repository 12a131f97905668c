"""Bookinfo deployment, smoke test and ingress gateway configuration."""

from __future__ import annotations

from typing import Any

from ..errors import BootstrapError, CommandError, DeploymentReadinessTimeout
from .context import RunContext
from .probe import PageProbe, find_title
from .stage import Stage
from .state import StageState

INGRESS_SERVICE = "istio-ingressgateway"
INGRESS_PORT_NAME = "http2"
PRODUCTPAGE_PATH = "/productpage"


def ingress_node_port(service: dict[str, Any], port_name: str = INGRESS_PORT_NAME) -> int | None:
    """Return the nodePort of a named port in a Service object."""
    for port in service.get("spec", {}).get("ports", []):
        if port.get("name") == port_name and port.get("nodePort") is not None:
            return int(port["nodePort"])
    return None


class WorkloadDeployer(Stage):
    """Deploy the sample application and expose it through the gateway."""

    name = "workload"
    description = "Deploying sample application"
    state = StageState.WORKLOAD

    def __init__(self, probe: PageProbe | None = None):
        self.probe = probe or PageProbe()

    def run(self, ctx: RunContext) -> None:
        self.deploy_sample_app(ctx)
        self.configure_gateway(ctx)

    def deploy_sample_app(self, ctx: RunContext) -> None:
        config = ctx.config
        ctx.log.info("Deploying sample microservices application...")

        bookinfo = config.istio_dir / "samples" / "bookinfo"
        ctx.kubectl.apply_path(bookinfo / "platform" / "kube" / "bookinfo.yaml")

        try:
            ctx.kubectl.wait_for_condition(
                "deployment",
                namespace=config.app_namespace,
                timeout_seconds=config.workload_timeout,
                select_all=True,
            )
        except CommandError as e:
            raise DeploymentReadinessTimeout(
                f"Deployments in '{config.app_namespace}' not available within "
                f"{config.workload_timeout}s: {e.message}",
                stage=self.name,
            ) from e

        ctx.log.output(ctx.kubectl.run("get", "services", "-n", config.app_namespace).stdout)
        ctx.log.output(ctx.kubectl.run("get", "pods", "-n", config.app_namespace).stdout)

        title = self.smoke_test(ctx)
        ctx.log.info(f"Internal request returned {title}")

        ctx.log.info("✓ Sample microservices application deployed")

    def smoke_test(self, ctx: RunContext) -> str:
        """Request the product page from inside the ratings pod."""
        namespace = ctx.config.app_namespace
        pods = ctx.kubectl.list_pods(namespace, selector="app=ratings")
        if not pods:
            raise BootstrapError(f"No ratings pod found in '{namespace}'", stage=self.name)

        pod_name = pods[0]["metadata"]["name"]
        result = ctx.kubectl.exec(
            pod_name,
            "ratings",
            ["curl", "-sS", f"productpage:9080{PRODUCTPAGE_PATH}"],
            namespace=namespace,
        )
        title = find_title(result.stdout)
        if not title:
            raise BootstrapError(
                "Product page smoke test returned no <title>", stage=self.name
            )
        return title

    def configure_gateway(self, ctx: RunContext) -> None:
        config = ctx.config
        ctx.log.info("Configuring Istio Gateway and VirtualService...")

        networking = config.istio_dir / "samples" / "bookinfo" / "networking"
        ctx.kubectl.apply_path(networking / "bookinfo-gateway.yaml")

        self.analyze(ctx)
        self.resolve_gateway(ctx)

        url = f"http://{ctx.gateway_url}{PRODUCTPAGE_PATH}"
        ctx.log.info(f"Gateway URL: {url}")

        result = self.probe.probe(url)
        if result.ok:
            ctx.log.info(f"External request returned {result.title}")
        else:
            ctx.warn(self.name, f"Gateway configuration in progress... ({result.error})")

        ctx.log.info("✓ Istio Gateway and VirtualService configured")

    def analyze(self, ctx: RunContext) -> None:
        """Run istioctl analyze; findings are reported, never fatal."""
        result = ctx.runner.run(["istioctl", "analyze"], check=False)
        output = (result.stdout + result.stderr).strip()
        ctx.log.output(output)
        if not result.ok:
            ctx.warn(self.name, f"istioctl analyze reported issues (exit {result.returncode})")
        elif "Warning" in output or "Error" in output:
            ctx.warn(self.name, "istioctl analyze reported warnings")

    def resolve_gateway(self, ctx: RunContext) -> None:
        """Find the externally reachable host and port of the ingress gateway."""
        host = ctx.runner.run(["minikube", "ip"]).stdout.strip()
        service = ctx.kubectl.get_json(
            "service", INGRESS_SERVICE, namespace=ctx.config.istio_namespace
        )
        port = ingress_node_port(service)
        if not host or port is None:
            raise BootstrapError(
                f"Could not resolve ingress gateway address (host={host!r}, port={port})",
                stage=self.name,
            )
        ctx.gateway_host = host
        ctx.gateway_port = port
