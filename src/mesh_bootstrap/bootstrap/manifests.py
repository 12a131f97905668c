"""Istio resource manifests applied by the bootstrap stages.

Builds VirtualService, PeerAuthentication and AuthorizationPolicy objects as
plain dicts, applied with Kubectl.apply_objects.
"""

from __future__ import annotations

from typing import Any

NETWORKING_API = "networking.istio.io/v1alpha3"
SECURITY_API = "security.istio.io/v1beta1"

# Default traffic split for the reviews service
DEFAULT_PINNED_SUBSET = "v2"
DEFAULT_WEIGHTS: dict[str, int] = {"v1": 90, "v3": 10}


def build_reviews_virtual_service(
    test_user: str = "jason",
    pinned_subset: str = DEFAULT_PINNED_SUBSET,
    weights: dict[str, int] | None = None,
    namespace: str | None = None,
) -> dict[str, Any]:
    """Build the reviews VirtualService.

    The header-match rule comes first so the test user always reaches the
    pinned subset; everyone else falls through to the weighted split.

    Args:
        test_user: Value of the end-user header routed to the pinned subset.
        pinned_subset: Subset serving the test user.
        weights: Weighted fallback as {subset: percent}. Must sum to 100.

    Returns:
        VirtualService manifest.
    """
    weights = weights if weights is not None else DEFAULT_WEIGHTS
    if sum(weights.values()) != 100:
        raise ValueError(f"Route weights must sum to 100, got {sum(weights.values())}")

    metadata: dict[str, Any] = {"name": "reviews"}
    if namespace:
        metadata["namespace"] = namespace

    return {
        "apiVersion": NETWORKING_API,
        "kind": "VirtualService",
        "metadata": metadata,
        "spec": {
            "hosts": ["reviews"],
            "http": [
                {
                    "match": [{"headers": {"end-user": {"exact": test_user}}}],
                    "route": [{"destination": {"host": "reviews", "subset": pinned_subset}}],
                },
                {
                    "route": [
                        {
                            "destination": {"host": "reviews", "subset": subset},
                            "weight": weight,
                        }
                        for subset, weight in weights.items()
                    ]
                },
            ],
        },
    }


def build_peer_authentication(namespace: str = "default") -> dict[str, Any]:
    """Build a namespace-wide STRICT mTLS PeerAuthentication."""
    return {
        "apiVersion": SECURITY_API,
        "kind": "PeerAuthentication",
        "metadata": {"name": "default", "namespace": namespace},
        "spec": {"mtls": {"mode": "STRICT"}},
    }


def build_allow_all_policy(namespace: str = "default") -> list[dict[str, Any]]:
    """Build the permissive policy: one empty rule matches every request."""
    return [
        {
            "apiVersion": SECURITY_API,
            "kind": "AuthorizationPolicy",
            "metadata": {"name": "allow-all", "namespace": namespace},
            "spec": {"rules": [{}]},
        }
    ]


def _principal(namespace: str, service_account: str) -> str:
    return f"cluster.local/ns/{namespace}/sa/{service_account}"


def build_least_privilege_policies(
    namespace: str = "default",
    istio_namespace: str = "istio-system",
) -> list[dict[str, Any]]:
    """Build per-workload ALLOW policies for the Bookinfo call graph.

    ingress gateway -> productpage -> details, reviews -> ratings. Once any
    ALLOW policy selects a workload, requests matching none of its rules are
    denied.
    """
    callers = {
        "productpage": [_principal(istio_namespace, "istio-ingressgateway-service-account")],
        "details": [_principal(namespace, "bookinfo-productpage")],
        "reviews": [_principal(namespace, "bookinfo-productpage")],
        "ratings": [_principal(namespace, "bookinfo-reviews")],
    }

    policies = []
    for app, principals in callers.items():
        policies.append(
            {
                "apiVersion": SECURITY_API,
                "kind": "AuthorizationPolicy",
                "metadata": {"name": f"{app}-viewer", "namespace": namespace},
                "spec": {
                    "selector": {"matchLabels": {"app": app}},
                    "action": "ALLOW",
                    "rules": [
                        {
                            "from": [{"source": {"principals": principals}}],
                            "to": [{"operation": {"methods": ["GET"]}}],
                        }
                    ],
                },
            }
        )
    return policies

