"""CLI main entry point."""

import sys
from dataclasses import fields

import click
from rich.console import Console
from rich.markup import escape

from .bootstrap import InvocationMode, Orchestrator, RunContext, RunStateStore
from .config import AUTHZ_MODES, BootstrapConfig, load_config
from .errors import BootstrapError, MissingDependency
from .shared.logging import configure_logging, get_logger

console = Console(stderr=True)
logger = get_logger(__name__)

MODE_FLAGS = (
    ("setup_cluster", "--setup-cluster", InvocationMode.CLUSTER_ONLY),
    ("install_istio", "--install-istio", InvocationMode.MESH_ONLY),
    ("deploy_app", "--deploy-app", InvocationMode.DEPLOY_ONLY),
    ("configure_advanced", "--configure-advanced", InvocationMode.CONFIGURE_ONLY),
    ("validate", "--validate", InvocationMode.VALIDATE_ONLY),
    ("info", "--info", InvocationMode.INFO_ONLY),
)


def resolve_mode(flags: dict[str, bool]) -> InvocationMode:
    """Map the mode flags to an InvocationMode; no flag means a full run."""
    selected = [(opt, mode) for name, opt, mode in MODE_FLAGS if flags.get(name)]
    if len(selected) > 1:
        raise click.UsageError(
            f"Options {', '.join(opt for opt, _ in selected)} are mutually exclusive"
        )
    return selected[0][1] if selected else InvocationMode.FULL


def log_config_sources(config: BootstrapConfig) -> None:
    """Log each effective config value and where it came from (debug level)."""
    for f in fields(config):
        if f.name.startswith("_"):
            continue
        value = getattr(config, f.name)
        logger.debug(f"Config {f.name}={value} (source: {config.get_source(f.name)})")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--setup-cluster", is_flag=True, help="Setup Minikube cluster")
@click.option("--install-istio", is_flag=True, help="Install Istio control plane and addons")
@click.option("--deploy-app", is_flag=True, help="Deploy sample microservices application")
@click.option(
    "--configure-advanced", is_flag=True, help="Configure traffic management and security"
)
@click.option("--validate", is_flag=True, help="Validate Istio installation")
@click.option("--info", is_flag=True, help="Show access information")
@click.option(
    "-c", "--config", "config_path", type=click.Path(dir_okay=False), help="Config file path"
)
@click.option("--istio-version", default=None, help="Istio release to install")
@click.option("--memory", "memory_mb", type=int, default=None, help="Minikube memory (MB)")
@click.option("--cpus", type=int, default=None, help="Minikube CPUs")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Run log path")
@click.option(
    "--work-dir",
    type=click.Path(file_okay=False),
    help="Directory for the Istio release and access info file",
)
@click.option(
    "--authz-mode",
    type=click.Choice(AUTHZ_MODES),
    default=None,
    help="Authorization policy to apply (default: allow-all)",
)
@click.option("-v", "--verbose", is_flag=True, help="Log every external command")
@click.option("--json-log", is_flag=True, help="Write terminal log lines as JSON")
def cli(
    setup_cluster: bool,
    install_istio: bool,
    deploy_app: bool,
    configure_advanced: bool,
    validate: bool,
    info: bool,
    config_path: str | None,
    istio_version: str | None,
    memory_mb: int | None,
    cpus: int | None,
    log_file: str | None,
    work_dir: str | None,
    authz_mode: str | None,
    verbose: bool,
    json_log: bool,
) -> None:
    """Istio Fundamentals - Service Mesh Setup.

    Stands up Minikube, installs Istio with its observability addons, deploys
    the Bookinfo sample and configures traffic management and security. With
    no option the complete setup runs; each option runs one part of it.

    Examples:

        # Complete setup
        mesh-bootstrap

        # Only (re)create the cluster
        mesh-bootstrap --setup-cluster

        # Show how to reach the application and dashboards
        mesh-bootstrap --info
    """
    mode = resolve_mode(
        {
            "setup_cluster": setup_cluster,
            "install_istio": install_istio,
            "deploy_app": deploy_app,
            "configure_advanced": configure_advanced,
            "validate": validate,
            "info": info,
        }
    )

    try:
        config = load_config(config_path).with_overrides(
            istio_version=istio_version,
            memory_mb=memory_mb,
            cpus=cpus,
            log_file=log_file,
            work_dir=work_dir,
            authz_mode=authz_mode,
        )
    except BootstrapError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)

    configure_logging(
        "debug" if verbose else "info", log_file=config.log_file, json_output=json_log
    )
    log_config_sources(config)

    try:
        ctx = RunContext.create(config, state_store=RunStateStore(config.state_file))
    except BootstrapError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)

    try:
        result = Orchestrator(ctx).run(mode)
    except MissingDependency as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)
    except BootstrapError as e:
        console.print(f"[red]Error:[/red] stage '{e.stage}' failed: {escape(str(e))}")
        console.print(f"[dim]See the run log: {config.log_file}[/dim]")
        sys.exit(1)

    if result.warnings:
        console.print(f"[yellow]Completed with {len(result.warnings)} warning(s)[/yellow]")


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
