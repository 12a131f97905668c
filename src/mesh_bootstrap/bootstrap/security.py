"""Security policies: strict mTLS and authorization."""

from __future__ import annotations

from typing import Any

from ..config import AUTHZ_LEAST_PRIVILEGE
from .context import RunContext
from .manifests import (
    build_allow_all_policy,
    build_least_privilege_policies,
    build_peer_authentication,
)
from .stage import Stage
from .state import StageState


class SecurityConfigurator(Stage):
    """Apply PeerAuthentication and AuthorizationPolicy objects.

    Both are applied by name, so repeating the stage leaves the policy set
    unchanged.
    """

    name = "security"
    description = "Configuring security policies"
    state = StageState.SECURITY

    def build_policies(self, ctx: RunContext) -> list[dict[str, Any]]:
        config = ctx.config
        if config.authz_mode == AUTHZ_LEAST_PRIVILEGE:
            authz = build_least_privilege_policies(config.app_namespace, config.istio_namespace)
        else:
            authz = build_allow_all_policy(config.app_namespace)
        return [build_peer_authentication(config.app_namespace), *authz]

    def run(self, ctx: RunContext) -> None:
        ctx.log.info("Configuring Istio security policies...")

        policies = self.build_policies(ctx)
        ctx.kubectl.apply_objects(policies[:1])
        ctx.kubectl.apply_objects(policies[1:])
        ctx.log.info(f"Authorization mode: {ctx.config.authz_mode}")

        ctx.log.info("✓ Security policies configured (mTLS enabled)")
