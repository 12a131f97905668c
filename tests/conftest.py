"""Shared test fixtures for mesh-bootstrap tests.

This module provides fixtures for running stages without a real cluster:
- FakeCommands: Stands in for subprocess.run, answering minikube, kubectl
  and istioctl invocations with canned output
- fake_commands: Patches subprocess.run and shutil.which with a FakeCommands
- ctx: A RunContext rooted in a temporary directory
"""

from __future__ import annotations

import json
import subprocess
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from mesh_bootstrap.bootstrap import RunContext, RunStateStore
from mesh_bootstrap.config import BootstrapConfig
from mesh_bootstrap.shared.logging import configure_logging

PRODUCTPAGE_HTML = "<html><head><title>Simple Bookstore App</title></head></html>"

# =============================================================================
# Canned cluster objects
# =============================================================================


def make_pod(name: str, phase: str = "Running", containers: list[str] | None = None) -> dict:
    return {
        "metadata": {"name": name},
        "spec": {"containers": [{"name": c} for c in (containers or [name.split("-")[0]])]},
        "status": {"phase": phase},
    }


INGRESS_SERVICE = {
    "metadata": {"name": "istio-ingressgateway", "namespace": "istio-system"},
    "spec": {
        "ports": [
            {"name": "status-port", "port": 15021, "nodePort": 31021},
            {"name": "http2", "port": 80, "nodePort": 30080},
            {"name": "https", "port": 443, "nodePort": 30443},
        ]
    },
}

SYSTEM_PODS = [
    make_pod("istiod-7d4f8c9b5-abcde"),
    make_pod("istio-ingressgateway-5c8d7-xyz12"),
    make_pod("kiali-6b7c9d-k1"),
    make_pod("jaeger-5f6d7-j1"),
]

APP_PODS = [
    make_pod("productpage-v1-abc", containers=["productpage", "istio-proxy"]),
    make_pod("details-v1-def", containers=["details", "istio-proxy"]),
    make_pod("ratings-v1-ghi", containers=["ratings", "istio-proxy"]),
    make_pod("reviews-v1-jkl", containers=["reviews", "istio-proxy"]),
]


# =============================================================================
# Fake external commands
# =============================================================================


Predicate = Callable[[list[str]], bool]


def has(*tokens: str) -> Predicate:
    """Predicate matching commands that contain every token."""
    return lambda cmd: all(token in cmd for token in tokens)


@dataclass
class FakeCommands:
    """Scripted replacement for subprocess.run.

    Every call is recorded. Commands succeed with canned output unless a
    failure or timeout has been registered for them.
    """

    calls: list[list[str]] = field(default_factory=list)
    inputs: list[str | None] = field(default_factory=list)
    missing_tools: set[str] = field(default_factory=set)
    failures: list[tuple[Predicate, int, str]] = field(default_factory=list)
    timeouts: list[Predicate] = field(default_factory=list)
    system_pods: list[dict[str, Any]] = field(default_factory=lambda: list(SYSTEM_PODS))
    app_pods: list[dict[str, Any]] = field(default_factory=lambda: list(APP_PODS))
    smoke_response: str = PRODUCTPAGE_HTML
    analyze_output: str = "✔ No validation issues found when analyzing namespace: default."

    def fail_when(self, *tokens: str, returncode: int = 1, stderr: str = "error") -> None:
        """Make commands containing every token exit non-zero."""
        self.failures.append((has(*tokens), returncode, stderr))

    def timeout_when(self, *tokens: str) -> None:
        """Make commands containing every token outlive their timeout."""
        self.timeouts.append(has(*tokens))

    def which(self, name: str, *args, **kwargs) -> str | None:
        if name in self.missing_tools:
            return None
        return f"/usr/bin/{name}"

    def __call__(self, cmd, *args, **kwargs) -> subprocess.CompletedProcess:
        cmd = list(cmd)
        self.calls.append(cmd)
        self.inputs.append(kwargs.get("input"))

        for predicate in self.timeouts:
            if predicate(cmd):
                raise subprocess.TimeoutExpired(cmd, kwargs.get("timeout"))
        for predicate, returncode, stderr in self.failures:
            if predicate(cmd):
                return subprocess.CompletedProcess(cmd, returncode, "", stderr)
        return subprocess.CompletedProcess(cmd, 0, self._stdout_for(cmd), "")

    def _stdout_for(self, cmd: list[str]) -> str:
        if cmd[:2] == ["minikube", "ip"]:
            return "192.168.49.2\n"
        if "exec" in cmd:
            return self.smoke_response
        if "analyze" in cmd:
            return self.analyze_output
        if "get" in cmd and "json" in cmd:
            if "service" in cmd:
                return json.dumps(INGRESS_SERVICE)
            if "pods" in cmd:
                if "app=ratings" in cmd:
                    pods = [p for p in self.app_pods if p["metadata"]["name"].startswith("ratings")]
                elif "istio-system" in cmd:
                    pods = self.system_pods
                else:
                    pods = self.app_pods
                return json.dumps({"kind": "List", "items": pods})
        return ""

    def called(self, *tokens: str) -> bool:
        """Whether any recorded command contained every token."""
        return any(has(*tokens)(cmd) for cmd in self.calls)

    def index(self, *tokens: str) -> int:
        """Position of the first recorded command containing every token."""
        for i, cmd in enumerate(self.calls):
            if has(*tokens)(cmd):
                return i
        raise AssertionError(f"No command containing {tokens} was run")


@pytest.fixture(autouse=True)
def _reset_logging() -> None:
    """Point logging at the current test's stderr."""
    configure_logging("debug")


@pytest.fixture
def fake_commands() -> Generator[FakeCommands, None, None]:
    """Patch subprocess.run and shutil.which with a FakeCommands."""
    fake = FakeCommands()
    with patch("subprocess.run", side_effect=fake):
        with patch("shutil.which", side_effect=fake.which):
            yield fake


@pytest.fixture
def config(tmp_path: Path) -> BootstrapConfig:
    """Configuration rooted in a temporary directory with short timeouts."""
    return BootstrapConfig(
        work_dir=tmp_path,
        log_file=tmp_path / "istio_setup.log",
        state_file=tmp_path / "state.yaml",
        control_plane_timeout=5,
        addon_timeout=5,
        workload_timeout=5,
    )


@pytest.fixture
def istio_release(config: BootstrapConfig) -> Path:
    """An already-downloaded Istio release, so no download is attempted."""
    bin_dir = config.istio_bin_dir
    bin_dir.mkdir(parents=True)
    (bin_dir / "istioctl").write_text("#!/bin/sh\n")
    return config.istio_dir


@pytest.fixture
def ctx(config: BootstrapConfig, fake_commands: FakeCommands) -> RunContext:
    """RunContext using the fake commands and a temporary state file."""
    return RunContext.create(config, state_store=RunStateStore(config.state_file))


@pytest.fixture
def gateway_page() -> Generator[MagicMock, None, None]:
    """Mock the external gateway request as serving the product page."""
    with patch("httpx.get") as mock_get:
        mock_get.return_value = MagicMock(status_code=200, text=PRODUCTPAGE_HTML)
        yield mock_get
