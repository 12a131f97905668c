"""kubectl wrapper used by the bootstrap stages.

Applies manifests (files, directories or in-memory objects), waits on
deployment conditions and reads cluster objects as JSON so that callers work
with structured data instead of scraping table output.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from ..errors import CommandError
from .shell import CommandResult, CommandRunner


class Kubectl:
    """Run kubectl through a CommandRunner."""

    def __init__(self, runner: CommandRunner, kubeconfig: str | None = None):
        """Initialize client.

        Args:
            runner: Runner used for every invocation.
            kubeconfig: Path to kubeconfig file.
        """
        self.runner = runner
        self.kubeconfig = kubeconfig

    def _kubectl_cmd(self) -> list[str]:
        """Build base kubectl command."""
        cmd = ["kubectl"]
        if self.kubeconfig:
            cmd.extend(["--kubeconfig", self.kubeconfig])
        return cmd

    def run(self, *args: str, check: bool = True, **kwargs) -> CommandResult:
        return self.runner.run(self._kubectl_cmd() + list(args), check=check, **kwargs)

    def apply_path(self, path: Path, namespace: str | None = None) -> CommandResult:
        """Apply a manifest file or every manifest in a directory."""
        args = ["apply", "-f", str(path)]
        if namespace:
            args.extend(["-n", namespace])
        return self.run(*args)

    def apply_objects(self, manifests: list[dict[str, Any]]) -> CommandResult:
        """Apply in-memory objects as a multi-document YAML stream on stdin.

        kubectl apply is an upsert keyed by kind/namespace/name, so applying the
        same objects again converges to the same state.
        """
        document = yaml.dump_all(manifests, default_flow_style=False, sort_keys=False)
        return self.run("apply", "-f", "-", input=document)

    def wait_for_condition(
        self,
        resource: str,
        condition: str = "available",
        namespace: str | None = None,
        timeout_seconds: int = 300,
        select_all: bool = False,
    ) -> CommandResult:
        """Block until a resource reports a condition or the bound elapses.

        The bound is passed to kubectl and also enforced on the process, so the
        call never outlives timeout_seconds.

        Args:
            resource: e.g. "deployment/kiali" or "deployment" with select_all.
            condition: Condition name to wait for.
            namespace: K8s namespace.
            timeout_seconds: Timeout in seconds.
            select_all: Wait on every object of the resource kind.

        Raises:
            CommandError: Condition not met (CommandTimeout when the process
                itself had to be stopped).
        """
        args = [
            "wait",
            f"--for=condition={condition}",
            f"--timeout={timeout_seconds}s",
            resource,
        ]
        if select_all:
            args.append("--all")
        if namespace:
            args.extend(["-n", namespace])
        return self.run(*args, timeout=timeout_seconds)

    def get_json(
        self,
        kind: str,
        name: str | None = None,
        namespace: str | None = None,
        selector: str | None = None,
        all_namespaces: bool = False,
    ) -> dict[str, Any]:
        """Get one object or a list as parsed JSON."""
        args = ["get", kind]
        if name:
            args.append(name)
        if all_namespaces:
            args.append("--all-namespaces")
        elif namespace:
            args.extend(["-n", namespace])
        if selector:
            args.extend(["-l", selector])
        args.extend(["-o", "json"])
        result = self.run(*args)
        try:
            return json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise CommandError(
                f"Unparseable output from kubectl get {kind}: {e}",
                command=result.command,
                returncode=result.returncode,
            ) from e

    def list_pods(
        self, namespace: str | None = None, selector: str | None = None
    ) -> list[dict[str, Any]]:
        """List pod objects in a namespace."""
        return self.get_json("pods", namespace=namespace, selector=selector).get("items", [])

    def label_namespace(self, namespace: str, label: str) -> CommandResult:
        return self.run("label", "namespace", namespace, label, "--overwrite")

    def exec(
        self,
        pod: str,
        container: str,
        command: list[str],
        namespace: str | None = None,
    ) -> CommandResult:
        """Run a command inside a pod container."""
        args = ["exec", pod, "-c", container]
        if namespace:
            args.extend(["-n", namespace])
        return self.run(*args, "--", *command)
