"""
Evaluation state for one (request, policy) pair.

A ``PolicyContext`` is never mutated after construction. Every ``with_*``
method returns a new instance, so concurrent admission requests and
successive policies in one pipeline run never observe each other's
intermediate state.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping

from admitlayer.domain.models import AdmissionRequest, Operation, Policy, UserInfo


@dataclass(frozen=True, slots=True)
class PolicyContext:
    new_resource: Mapping[str, Any] = field(default_factory=dict)
    old_resource: Mapping[str, Any] = field(default_factory=dict)
    policy: Policy | None = None
    namespace_labels: Mapping[str, str] = field(default_factory=dict)
    operation: Operation = Operation.CREATE
    user_info: UserInfo = field(default_factory=UserInfo)
    request: AdmissionRequest | None = None

    @classmethod
    def from_admission_request(cls, request: AdmissionRequest) -> PolicyContext:
        return cls(
            new_resource=_frozen_copy(request.resource_object()),
            old_resource=_frozen_copy(request.old_object or {}),
            operation=request.operation,
            user_info=request.user_info,
            request=request,
        )

    def with_policy(self, policy: Policy) -> PolicyContext:
        return replace(self, policy=policy)

    def with_new_resource(self, resource: Mapping[str, Any]) -> PolicyContext:
        return replace(self, new_resource=_frozen_copy(resource))

    def with_namespace_labels(self, labels: Mapping[str, str]) -> PolicyContext:
        return replace(self, namespace_labels=MappingProxyType(dict(labels)))

    def resource(self) -> dict[str, Any]:
        """A private, mutable copy of the object under evaluation."""
        return copy.deepcopy(dict(self.new_resource))


def _frozen_copy(resource: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(copy.deepcopy(dict(resource)))
