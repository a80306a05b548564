from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Mapping, Protocol

from admitlayer.domain.models import Policy

if TYPE_CHECKING:
    from admitlayer.engine.context import PolicyContext


class RuleType(StrEnum):
    MUTATION = "Mutation"
    VALIDATION = "Validation"
    GENERATION = "Generation"


class RuleStatus(StrEnum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"
    ERROR = "error"
    SKIP = "skip"


@dataclass(slots=True)
class RuleResponse:
    """Outcome of a single rule. ``patches`` holds one JSON patch operation per entry."""

    name: str
    rule_type: RuleType = RuleType.MUTATION
    status: RuleStatus = RuleStatus.PASS
    message: str = ""
    patches: list[bytes] = field(default_factory=list)


@dataclass(slots=True)
class EngineResponse:
    """Outcome of evaluating one policy against one object."""

    policy: Policy
    patched_resource: Mapping[str, Any]
    rules: list[RuleResponse] = field(default_factory=list)

    @property
    def patched_kind(self) -> str:
        return str(self.patched_resource.get("kind", ""))

    @property
    def patched_api_version(self) -> str:
        return str(self.patched_resource.get("apiVersion", ""))

    def is_successful(self) -> bool:
        return not any(r.status in (RuleStatus.FAIL, RuleStatus.ERROR) for r in self.rules)

    def get_patches(self) -> list[bytes]:
        patches: list[bytes] = []
        for rule in self.rules:
            patches.extend(rule.patches)
        return patches

    def get_success_rules(self) -> list[str]:
        return [r.name for r in self.rules if r.status == RuleStatus.PASS]

    def get_failed_rules_with_errors(self) -> list[str]:
        return [
            f"{r.name}: {r.message}"
            for r in self.rules
            if r.status in (RuleStatus.FAIL, RuleStatus.ERROR)
        ]


class Engine(Protocol):
    """Rule evaluation engine; admitlayer only consumes its responses."""

    async def mutate(self, policy_context: PolicyContext) -> EngineResponse: ...
