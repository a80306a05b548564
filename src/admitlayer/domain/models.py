from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field

NAMESPACE_KIND = "Namespace"
WILDCARD_KIND = "*"


class Operation(StrEnum):
    """Admission operations."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CONNECT = "CONNECT"


class GroupVersionKind(BaseModel):
    model_config = ConfigDict(frozen=True)

    group: str = ""
    version: str = "v1"
    kind: str

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version


class GroupVersionResource(BaseModel):
    model_config = ConfigDict(frozen=True)

    group: str = ""
    version: str = "v1"
    resource: str = ""


class UserInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str = ""
    uid: str = ""
    groups: Sequence[str] = Field(default_factory=tuple)


class AdmissionRequest(BaseModel):
    """One intercepted API operation, immutable for the duration of a pipeline run."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    uid: str
    kind: GroupVersionKind
    resource: GroupVersionResource = Field(default_factory=GroupVersionResource)
    namespace: str = ""
    name: str = ""
    operation: Operation = Operation.CREATE
    user_info: UserInfo = Field(default_factory=UserInfo, alias="userInfo")
    object: Mapping[str, Any] | None = None
    old_object: Mapping[str, Any] | None = Field(default=None, alias="oldObject")
    dry_run: bool = Field(default=False, alias="dryRun")
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def resource_object(self) -> dict[str, Any]:
        """The object the policies evaluate: the new object, or the old one on delete."""
        source = self.object if self.object is not None else self.old_object
        return dict(source or {})


class AdmissionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uid: str
    allowed: bool = True
    patch: str | None = None
    patch_type: str | None = Field(default=None, alias="patchType")
    warnings: list[str] = Field(default_factory=list)
    status: dict[str, Any] | None = None


class AdmissionReview(BaseModel):
    """The webhook envelope carrying a request in and a response out."""

    model_config = ConfigDict(populate_by_name=True)

    api_version: str = Field(default="admission.k8s.io/v1", alias="apiVersion")
    kind: str = "AdmissionReview"
    request: AdmissionRequest | None = None
    response: AdmissionResponse | None = None


class Rule(BaseModel):
    """A single policy rule. Rule bodies are opaque to admitlayer."""

    model_config = ConfigDict(frozen=True)

    name: str
    match: Mapping[str, Any] = Field(default_factory=dict)
    mutate: Mapping[str, Any] | None = None
    validate_: Mapping[str, Any] | None = Field(default=None, alias="validate")
    generate: Mapping[str, Any] | None = None

    def has_mutate(self) -> bool:
        return bool(self.mutate)

    def has_generate(self) -> bool:
        return bool(self.generate)


class Policy(BaseModel):
    """A named, ordered set of rules. Read-only during evaluation."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: str = "ClusterPolicy"
    name: str
    namespace: str = ""
    rules: Sequence[Rule] = Field(default_factory=tuple)
    validate_schema: bool = Field(default=True, alias="schemaValidation")

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}" if self.namespace else self.name

    def has_mutate(self) -> bool:
        return any(rule.has_mutate() for rule in self.rules)

    def has_generate(self) -> bool:
        return any(rule.has_generate() for rule in self.rules)

    @classmethod
    def from_manifest(cls, manifest: Mapping[str, Any]) -> Policy:
        """Build a policy from a ``ClusterPolicy``/``Policy`` manifest."""
        metadata = manifest.get("metadata") or {}
        spec = manifest.get("spec") or {}
        return cls(
            kind=manifest.get("kind", "ClusterPolicy"),
            name=metadata["name"],
            namespace=metadata.get("namespace", ""),
            rules=[Rule.model_validate(rule) for rule in spec.get("rules") or []],
            validate_schema=spec.get("schemaValidation", True),
        )
