"""Traffic management: destination rules and the reviews traffic split."""

from __future__ import annotations

import random
import re
from collections.abc import Mapping
from typing import Any

from .context import RunContext
from .manifests import build_reviews_virtual_service
from .stage import Stage
from .state import StageState


def _header_matches(condition: Mapping[str, str], value: str | None) -> bool:
    if value is None:
        return False
    if "exact" in condition:
        return value == condition["exact"]
    if "prefix" in condition:
        return value.startswith(condition["prefix"])
    if "regex" in condition:
        return re.fullmatch(condition["regex"], value) is not None
    return False


def _request_matches(match: Mapping[str, Any], headers: Mapping[str, str]) -> bool:
    lowered = {k.lower(): v for k, v in headers.items()}
    return all(
        _header_matches(condition, lowered.get(name.lower()))
        for name, condition in match.get("headers", {}).items()
    )


def select_destination(
    virtual_service: Mapping[str, Any],
    headers: Mapping[str, str],
    rng: random.Random | None = None,
) -> dict[str, Any]:
    """Pick the destination a request would be routed to.

    Mirrors the router: http rules are evaluated in order and the first rule
    whose match conditions hold (or which has none) wins. Within the winning
    rule a destination is chosen by weight.

    Args:
        virtual_service: VirtualService manifest.
        headers: Request headers.
        rng: Random source for the weighted choice.

    Returns:
        The chosen destination ({"host": ..., "subset": ...}).
    """
    rng = rng or random.Random()
    for rule in virtual_service["spec"]["http"]:
        matches = rule.get("match")
        if matches and not any(_request_matches(m, headers) for m in matches):
            continue

        routes = rule["route"]
        if len(routes) == 1:
            return routes[0]["destination"]
        weights = [route.get("weight", 0) for route in routes]
        return rng.choices(routes, weights=weights, k=1)[0]["destination"]

    raise LookupError("No http rule matched the request")


class TrafficConfigurator(Stage):
    """Apply destination rules and route the reviews service.

    The test user is pinned to one subset by header; all other traffic is
    split by weight. Nothing is kept locally.
    """

    name = "traffic"
    description = "Configuring traffic management"
    state = StageState.TRAFFIC

    def run(self, ctx: RunContext) -> None:
        config = ctx.config
        ctx.log.info("Configuring advanced traffic management...")

        networking = config.istio_dir / "samples" / "bookinfo" / "networking"
        ctx.kubectl.apply_path(networking / "destination-rule-all.yaml")

        virtual_service = build_reviews_virtual_service(
            test_user=config.test_user, namespace=config.app_namespace
        )
        ctx.kubectl.apply_objects([virtual_service])

        ctx.log.info("✓ Traffic management rules configured")
