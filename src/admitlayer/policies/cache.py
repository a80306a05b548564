from __future__ import annotations

from typing import Protocol

import structlog

from admitlayer.domain.models import Policy

logger = structlog.get_logger()


class PolicyLister(Protocol):
    def list_for(self, namespace: str) -> list[Policy]: ...


class PolicyCache:
    """In-memory policy store keyed by ``namespace/name``.

    Cluster-wide policies apply everywhere; namespaced policies only apply
    to requests in their own namespace. Ordering is by key so every
    replica evaluates policies in the same order.
    """

    def __init__(self, policies: list[Policy] | None = None) -> None:
        self._policies: dict[str, Policy] = {}
        for policy in policies or []:
            self.set(policy)

    def set(self, policy: Policy) -> None:
        self._policies[policy.key] = policy
        logger.debug("policy_cached", policy=policy.key, mutate=policy.has_mutate())

    def unset(self, key: str) -> None:
        if self._policies.pop(key, None) is not None:
            logger.debug("policy_evicted", policy=key)

    def get(self, key: str) -> Policy | None:
        return self._policies.get(key)

    def list_for(self, namespace: str) -> list[Policy]:
        return [
            policy
            for key, policy in sorted(self._policies.items())
            if not policy.namespace or policy.namespace == namespace
        ]

    def __len__(self) -> int:
        return len(self._policies)
