"""Prerequisite detection for the bootstrap run.

Probes PATH for every required executable and reports all missing ones at
once rather than stopping at the first.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..errors import MissingDependency
from .context import RunContext
from .stage import Stage
from .state import StageState

REQUIRED_TOOLS: tuple[str, ...] = ("minikube", "kubectl", "curl")


class PrerequisiteChecker(Stage):
    """Verify the external tools the run depends on are installed."""

    name = "prerequisites"
    description = "Checking prerequisites"
    state = StageState.PREREQUISITES

    def __init__(self, tools: Sequence[str] = REQUIRED_TOOLS):
        self.tools = tuple(tools)

    def find_missing(self, ctx: RunContext) -> list[str]:
        """Return every required tool that is not on PATH, in order."""
        return [tool for tool in self.tools if ctx.runner.which(tool) is None]

    def run(self, ctx: RunContext) -> None:
        ctx.log.info("Checking prerequisites...")

        missing = self.find_missing(ctx)
        if missing:
            ctx.log.error(f"Missing required tools: {' '.join(missing)}")
            ctx.log.info("Please install missing tools and retry")
            raise MissingDependency(stage=self.name, missing=missing)

        ctx.log.info("✓ All prerequisites satisfied")
