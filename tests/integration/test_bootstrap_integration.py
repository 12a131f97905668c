"""Integration tests for the mesh-bootstrap command.

Tests the full CLI flow with mocked minikube, kubectl and istioctl.
"""

from __future__ import annotations

import re

import pytest
from click.testing import CliRunner

from mesh_bootstrap.main import cli

pytestmark = pytest.mark.integration


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Point every path the CLI touches at a temporary directory."""
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("MESH_BOOTSTRAP_WORK_DIR", str(tmp_path))
    monkeypatch.setenv("MESH_BOOTSTRAP_LOG_FILE", str(tmp_path / "istio_setup.log"))
    monkeypatch.setenv("MESH_BOOTSTRAP_STATE_FILE", str(tmp_path / "state.yaml"))
    for name in ("MESH_BOOTSTRAP_ISTIO_VERSION", "MESH_BOOTSTRAP_AUTHZ_MODE"):
        monkeypatch.delenv(name, raising=False)

    bin_dir = tmp_path / "istio-1.19.3" / "bin"
    bin_dir.mkdir(parents=True)
    (bin_dir / "istioctl").write_text("#!/bin/sh\n")
    return tmp_path


class TestFullSetup:
    """Tests for a run with no options."""

    def test_success(self, workspace, fake_commands, gateway_page):
        """Test a complete setup exits 0 and writes the access report."""
        runner = CliRunner()
        result = runner.invoke(cli, [])

        assert result.exit_code == 0, result.output
        assert "Istio service mesh setup completed successfully" in result.output

        report = (workspace / "istio_access_info.txt").read_text()
        assert "http://192.168.49.2:30080/productpage" in report
        assert "kubectl port-forward svc/kiali 20001:20001 -n istio-system" in report

        log = (workspace / "istio_setup.log").read_text()
        assert "=== Starting complete Istio setup ===" in log
        assert "=== Istio service mesh setup completed successfully ===" in log

    def test_missing_tool(self, workspace, fake_commands):
        """Test a missing tool exits 1 without touching the cluster."""
        fake_commands.missing_tools = {"kubectl"}

        runner = CliRunner()
        result = runner.invoke(cli, [])

        assert result.exit_code == 1
        assert "Missing required tools: kubectl" in result.output
        assert not fake_commands.called("minikube")
        assert not (workspace / "istio_access_info.txt").exists()

    def test_stage_failure(self, workspace, fake_commands):
        """Test a fatal stage error exits 1 and names the stage."""
        fake_commands.fail_when("minikube", "start", stderr="driver not healthy")

        runner = CliRunner()
        result = runner.invoke(cli, [])

        assert result.exit_code == 1
        assert "stage 'cluster' failed" in result.output
        assert not fake_commands.called("istioctl", "install")

    def test_log_appended_across_runs(self, workspace, fake_commands):
        """Test the run log keeps earlier runs."""
        runner = CliRunner()
        runner.invoke(cli, ["--info"])
        runner.invoke(cli, ["--info"])

        log = (workspace / "istio_setup.log").read_text()
        assert log.count("Generating access information for observability tools...") == 2

    def test_log_file_line_format(self, workspace, fake_commands):
        """Test every run log line is a bracketed timestamp and the message."""
        runner = CliRunner()
        result = runner.invoke(cli, ["--info"])
        assert result.exit_code == 0, result.output

        lines = (workspace / "istio_setup.log").read_text(encoding="utf-8").splitlines()
        assert lines
        assert re.fullmatch(
            r"\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] "
            r"Generating access information for observability tools\.\.\.",
            lines[0],
        )
        for line in lines:
            assert re.match(r"\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] ", line)

    def test_verbose_logs_config_sources(self, workspace, fake_commands):
        """Test -v records where each config value came from."""
        runner = CliRunner()
        result = runner.invoke(cli, ["--info", "-v", "--cpus", "2"])
        assert result.exit_code == 0, result.output

        log = (workspace / "istio_setup.log").read_text(encoding="utf-8")
        assert "Config cpus=2 (source: cli)" in log
        assert f"Config work_dir={workspace} (source: environment)" in log
        assert "Config memory_mb=8192 (source: default)" in log

    def test_json_terminal_log(self, workspace, fake_commands):
        """Test --json-log renders terminal lines as JSON while the file keeps its format."""
        runner = CliRunner()
        result = runner.invoke(cli, ["--info", "--json-log"])
        assert result.exit_code == 0, result.output

        assert '"event": "Generating access information for observability tools..."' in (
            result.output
        )
        first = (workspace / "istio_setup.log").read_text(encoding="utf-8").splitlines()[0]
        assert first.endswith("] Generating access information for observability tools...")


class TestModes:
    """Tests for single-stage invocations."""

    def test_setup_cluster(self, workspace, fake_commands):
        """Test --setup-cluster checks prerequisites and starts Minikube only."""
        runner = CliRunner()
        result = runner.invoke(cli, ["--setup-cluster", "--memory", "4096", "--cpus", "2"])

        assert result.exit_code == 0, result.output
        assert fake_commands.called("minikube", "start", "--memory=4096", "--cpus=2")
        assert not fake_commands.called("istioctl")
        assert "cluster-only completed successfully" in result.output

    def test_setup_cluster_new_work_dir(self, workspace, fake_commands):
        """Test a --work-dir that does not exist yet is created before any command."""
        work_dir = workspace / "does-not-exist"
        runner = CliRunner()
        result = runner.invoke(cli, ["--setup-cluster", "--work-dir", str(work_dir)])

        assert result.exit_code == 0, result.output
        assert work_dir.is_dir()
        assert "minikube not found" not in result.output
        assert fake_commands.called("minikube", "start")

    def test_info_new_work_dir(self, workspace, fake_commands):
        """Test --info writes its report into a freshly created work directory."""
        work_dir = workspace / "reports" / "today"
        runner = CliRunner()
        result = runner.invoke(cli, ["--info", "--work-dir", str(work_dir)])

        assert result.exit_code == 0, result.output
        assert (work_dir / "istio_access_info.txt").exists()

    def test_configure_advanced(self, workspace, fake_commands):
        """Test --configure-advanced applies traffic and security policy."""
        runner = CliRunner()
        result = runner.invoke(cli, ["--configure-advanced", "--authz-mode", "least-privilege"])

        assert result.exit_code == 0, result.output
        assert fake_commands.called("apply", "-f", "-")
        assert "Authorization mode: least-privilege" in result.output

    def test_info_uses_persisted_gateway(self, workspace, fake_commands, gateway_page):
        """Test --info reads the gateway resolved by an earlier --deploy-app."""
        runner = CliRunner()
        deploy = runner.invoke(cli, ["--deploy-app"])
        assert deploy.exit_code == 0, deploy.output

        fake_commands.calls.clear()
        result = runner.invoke(cli, ["--info"])

        assert result.exit_code == 0, result.output
        assert "Bookinfo Application: http://192.168.49.2:30080/productpage" in result.output
        assert fake_commands.calls == []

    def test_info_without_gateway(self, workspace, fake_commands):
        """Test --info before any deployment still succeeds with a placeholder."""
        runner = CliRunner()
        result = runner.invoke(cli, ["--info"])

        assert result.exit_code == 0, result.output
        assert "<gateway-unresolved>" in result.output
        assert "Completed with 1 warning(s)" in result.output

    def test_validate_never_fails(self, workspace, fake_commands):
        """Test --validate exits 0 even when the cluster is unhealthy."""
        fake_commands.fail_when("get", "pods", stderr="connection refused")

        runner = CliRunner()
        result = runner.invoke(cli, ["--validate"])

        assert result.exit_code == 0, result.output
        assert "Istio installation validation completed" in result.output


class TestUsage:
    """Tests for argument handling."""

    def test_help(self, workspace, fake_commands):
        """Test --help lists the modes and runs nothing."""
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for flag in (
            "--setup-cluster",
            "--install-istio",
            "--deploy-app",
            "--configure-advanced",
            "--validate",
            "--info",
        ):
            assert flag in result.output
        assert fake_commands.calls == []

    def test_unknown_option(self, workspace, fake_commands):
        """Test an unknown option is a usage error."""
        runner = CliRunner()
        result = runner.invoke(cli, ["--bogus"])

        assert result.exit_code == 2
        assert fake_commands.calls == []

    def test_mutually_exclusive_modes(self, workspace, fake_commands):
        """Test two mode options at once are rejected."""
        runner = CliRunner()
        result = runner.invoke(cli, ["--validate", "--info"])

        assert result.exit_code == 2
        assert "mutually exclusive" in result.output

    def test_invalid_authz_mode(self, workspace, fake_commands):
        """Test an unknown authorization mode is rejected."""
        runner = CliRunner()
        result = runner.invoke(cli, ["--authz-mode", "open"])

        assert result.exit_code == 2

    def test_missing_config_file(self, workspace, fake_commands):
        """Test an explicit config file that does not exist exits 1."""
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(workspace / "missing.yaml")])

        assert result.exit_code == 1
        assert "Config file not found" in result.output
