"""Access information report for the application and observability tools."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

import click

from .context import RunContext
from .stage import Stage
from .state import StageState

UNRESOLVED_GATEWAY = "<gateway-unresolved>"


@dataclass
class AddonEndpoint:
    """An observability tool reachable through kubectl port-forward."""

    title: str
    service: str
    port: int
    description: str

    def port_forward_command(self, namespace: str) -> str:
        return f"kubectl port-forward svc/{self.service} {self.port}:{self.port} -n {namespace}"

    @property
    def local_url(self) -> str:
        return f"http://localhost:{self.port}"


DEFAULT_ENDPOINTS: tuple[AddonEndpoint, ...] = (
    AddonEndpoint("Kiali", "kiali", 20001, "Service Mesh UI"),
    AddonEndpoint("Grafana", "grafana", 3000, "Metrics Dashboard"),
    AddonEndpoint("Prometheus", "prometheus", 9090, "Metrics Collection"),
    AddonEndpoint("Jaeger", "jaeger", 16686, "Distributed Tracing"),
)


@dataclass
class AccessInfo:
    """Everything needed to reach the deployed mesh."""

    gateway_url: str | None
    istio_namespace: str = "istio-system"
    endpoints: tuple[AddonEndpoint, ...] = DEFAULT_ENDPOINTS
    generated_at: datetime = field(default_factory=datetime.now)

    @property
    def productpage_url(self) -> str:
        return f"http://{self.gateway_url or UNRESOLVED_GATEWAY}/productpage"

    def render(self) -> str:
        """Render the plain-text report."""
        lines = [
            "=== Istio Service Mesh Access Information ===",
            f"Generated: {self.generated_at.strftime('%a %b %d %H:%M:%S %Y')}",
            "",
            "=== Application Access ===",
            f"Bookinfo Application: {self.productpage_url}",
            "",
            "=== Observability Tools ===",
            "Access these tools using kubectl port-forward:",
            "",
        ]
        for endpoint in self.endpoints:
            lines.extend(
                [
                    f"{endpoint.title} ({endpoint.description}):",
                    f"  {endpoint.port_forward_command(self.istio_namespace)}",
                    f"  Access: {endpoint.local_url}",
                    "",
                ]
            )
        lines.extend(
            [
                "=== Useful Commands ===",
                "Check Istio configuration: istioctl analyze",
                "View proxy configuration: istioctl proxy-config cluster <pod-name>",
                "Generate traffic: while true; do curl -s "
                f"{self.productpage_url} > /dev/null; sleep 1; done",
            ]
        )
        return "\n".join(lines) + "\n"


class InfoReporter(Stage):
    """Write the access report to a file and echo it. No external calls."""

    name = "info"
    description = "Generating access information"
    state = StageState.REPORTED

    def build(self, ctx: RunContext) -> AccessInfo:
        return AccessInfo(
            gateway_url=ctx.gateway_url,
            istio_namespace=ctx.config.istio_namespace,
        )

    def run(self, ctx: RunContext) -> None:
        ctx.log.info("Generating access information for observability tools...")

        info = self.build(ctx)
        if info.gateway_url is None:
            ctx.warn(self.name, "Gateway address unknown; run with --deploy-app first")

        info_file = ctx.config.access_info_path
        report = info.render()
        info_file.write_text(report)

        click.echo(report, nl=False)
        ctx.log.info(f"✓ Access information saved to {info_file}")
