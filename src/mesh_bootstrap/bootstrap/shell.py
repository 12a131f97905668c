"""External command execution for bootstrap stages.

Every CLI invocation (minikube, kubectl, istioctl, sh) goes through
CommandRunner so that PATH additions, logging and fail-fast error handling
are applied in one place.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from ..errors import CommandError, CommandTimeout
from ..shared.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CommandResult:
    """Outcome of an external command."""

    command: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Run external commands one at a time, waiting for each to finish."""

    def __init__(self, cwd: Path | None = None):
        """Initialize runner.

        Args:
            cwd: Working directory for commands (default: current directory).
        """
        self.cwd = cwd
        self.extra_path: list[Path] = []

    def add_to_path(self, directory: Path) -> None:
        """Prepend a directory to PATH for every later command of this run."""
        if directory not in self.extra_path:
            self.extra_path.insert(0, directory)

    def _env(self, env: dict[str, str] | None = None) -> dict[str, str] | None:
        if not self.extra_path and not env:
            return None
        merged = dict(os.environ)
        if self.extra_path:
            parts = [str(p) for p in self.extra_path]
            parts.append(merged.get("PATH", ""))
            merged["PATH"] = os.pathsep.join(parts)
        if env:
            merged.update(env)
        return merged

    def which(self, name: str) -> str | None:
        """Locate an executable, honouring directories added to PATH."""
        search = None
        if self.extra_path:
            search = os.pathsep.join(
                [str(p) for p in self.extra_path] + [os.environ.get("PATH", "")]
            )
        return shutil.which(name, path=search)

    def run(
        self,
        cmd: list[str],
        check: bool = True,
        input: str | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run a command to completion.

        Args:
            cmd: Command and arguments.
            check: Raise CommandError on a non-zero exit.
            input: Text passed on stdin.
            env: Extra environment variables.
            timeout: Hard bound in seconds.

        Returns:
            CommandResult with captured output.

        Raises:
            CommandError: The command failed (only when check is True) or the
                executable could not be found.
            CommandTimeout: The command did not finish within timeout.
        """
        logger.debug("Running command", command=" ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                input=input,
                cwd=self.cwd,
                env=self._env(env),
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise CommandTimeout(
                f"{cmd[0]} did not finish within {timeout}s",
                command=list(cmd),
                timeout_seconds=timeout,
            ) from e
        except FileNotFoundError as e:
            if self.cwd is not None and not Path(self.cwd).is_dir():
                raise CommandError(
                    f"Working directory not found: {self.cwd}", command=list(cmd)
                ) from e
            raise CommandError(f"{cmd[0]} not found", command=list(cmd)) from e

        outcome = CommandResult(
            command=list(cmd),
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )
        if check and not outcome.ok:
            detail = outcome.stderr.strip() or outcome.stdout.strip()
            raise CommandError(
                f"Command failed ({outcome.returncode}): {' '.join(cmd)}"
                + (f": {detail}" if detail else ""),
                command=list(cmd),
                returncode=outcome.returncode,
                stderr=outcome.stderr,
            )
        return outcome
