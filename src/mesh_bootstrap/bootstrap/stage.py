"""Base class for orchestrator stages."""

from __future__ import annotations

from .context import RunContext
from .state import StageState


class Stage:
    """A named unit of work run once, in order, by the orchestrator.

    Subclasses set `name`, `description` and the `state` the pipeline reaches
    when the stage completes, and implement run(). Fatal problems are raised
    as BootstrapError; anything else goes through ctx.warn().
    """

    name: str = ""
    description: str = ""
    state: StageState = StageState.NOT_STARTED

    def run(self, ctx: RunContext) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
