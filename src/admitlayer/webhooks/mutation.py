"""
Admission-time mutation pipeline.

Policies are applied strictly in order. Each policy sees the object as
mutated by the policies before it, and the run is all-or-nothing: one
failed policy (or one schema rejection) discards every fragment produced
so far and no events are emitted.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Protocol

import structlog

from admitlayer.core.errors import PolicyApplicationError
from admitlayer.domain.models import NAMESPACE_KIND, WILDCARD_KIND, AdmissionRequest, Policy
from admitlayer.engine.api import Engine, EngineResponse
from admitlayer.engine.context import PolicyContext
from admitlayer.event.generator import EventGenerator
from admitlayer.webhooks.annotations import generate_annotation_patches
from admitlayer.webhooks.patches import join_patches
from admitlayer.webhooks.utils import generate_events, get_warning_messages

logger = structlog.get_logger()


class SchemaValidator(Protocol):
    """Raises when a mutated object is not valid for its kind."""

    async def validate_resource(
        self, resource: Mapping[str, Any], api_version: str, kind: str
    ) -> None: ...


class NamespaceLabelSource(Protocol):
    async def labels_for(self, kind: str, namespace: str) -> dict[str, str]: ...


class MutationHandler:
    def __init__(
        self,
        engine: Engine,
        event_generator: EventGenerator,
        schema_validator: SchemaValidator,
        namespace_labels: NamespaceLabelSource,
    ) -> None:
        self._engine = engine
        self._event_generator = event_generator
        self._schema_validator = schema_validator
        self._namespace_labels = namespace_labels

    async def handle_mutation(
        self,
        request: AdmissionRequest,
        policies: list[Policy],
        policy_context: PolicyContext,
        admission_timestamp: datetime | None = None,
    ) -> tuple[bytes | None, list[str]]:
        """Return the merged patch and warning messages, or raise PolicyApplicationError."""
        patch, responses = await self.apply_mutations(request, policies, policy_context)
        started = admission_timestamp or request.received_at
        if started.tzinfo is None:
            started = started.replace(tzinfo=timezone.utc)
        logger.debug(
            "mutation_handled",
            patch=patch.decode() if patch else None,
            latency_ms=(datetime.now(timezone.utc) - started).total_seconds() * 1000,
        )
        return patch, get_warning_messages(responses)

    async def apply_mutations(
        self,
        request: AdmissionRequest,
        policies: list[Policy],
        policy_context: PolicyContext,
    ) -> tuple[bytes | None, list[EngineResponse]]:
        if not any(policy.has_mutate() for policy in policies):
            return None, []

        patches: list[bytes] = []
        responses: list[EngineResponse] = []
        running = policy_context

        for policy in policies:
            if not policy.has_mutate():
                continue
            logger.debug("applying_policy_mutate_rules", policy=policy.name)
            current = running.with_policy(policy)
            response = await self._apply_mutation(request, current)

            policy_patches = response.get_patches()
            if policy_patches:
                patches.extend(policy_patches)
                rules = response.get_success_rules()
                if rules:
                    logger.info("policy_mutation_applied", policy=policy.name, rules=rules)

            running = current.with_new_resource(response.patched_resource)
            responses.append(response)

        patches.extend(generate_annotation_patches(responses, running.new_resource))

        if request.dry_run:
            logger.debug("events_skipped_for_dry_run", responses=len(responses))
        else:
            self._event_generator.add(*generate_events(responses, request))

        if patches:
            logger.debug("patches_created", count=len(patches))
        return join_patches(*patches), responses

    async def _apply_mutation(
        self, request: AdmissionRequest, policy_context: PolicyContext
    ) -> EngineResponse:
        kind = request.kind.kind
        if kind != NAMESPACE_KIND and request.namespace:
            labels = await self._namespace_labels.labels_for(kind, request.namespace)
            policy_context = policy_context.with_namespace_labels(labels)

        policy = policy_context.policy
        assert policy is not None
        response = await self._engine.mutate(policy_context)

        if not response.is_successful():
            failed = response.get_failed_rules_with_errors()
            logger.warning("policy_mutation_failed", policy=policy.name, failed_rules=failed)
            raise PolicyApplicationError(
                f"failed to apply policy {policy.name} rules {failed}",
                policy=policy.name,
                failed_rules=failed,
            )

        if policy.validate_schema and response.patched_kind != WILDCARD_KIND:
            try:
                await self._schema_validator.validate_resource(
                    response.patched_resource,
                    response.patched_api_version,
                    response.patched_kind,
                )
            except Exception as exc:
                logger.warning("mutated_resource_invalid", policy=policy.name, error=str(exc))
                raise PolicyApplicationError(
                    f"failed to validate resource mutated by policy {policy.name}: {exc}",
                    policy=policy.name,
                ) from exc

        return response
