from __future__ import annotations

from admitlayer.domain.models import AdmissionRequest
from admitlayer.engine.api import EngineResponse, RuleStatus
from admitlayer.event.models import Event, ObjectReference, Reason, Source


def get_warning_messages(responses: list[EngineResponse]) -> list[str]:
    warnings: list[str] = []
    for response in responses:
        for rule in response.rules:
            if rule.status in (RuleStatus.PASS, RuleStatus.SKIP):
                continue
            warnings.append(f"policy {response.policy.name}.{rule.name}: {rule.message}")
    return warnings


def is_triggered(response: EngineResponse) -> bool:
    return any(rule.status != RuleStatus.SKIP for rule in response.rules)


def resource_reference(request: AdmissionRequest) -> ObjectReference:
    return ObjectReference(
        kind=request.kind.kind,
        name=request.name,
        namespace=request.namespace,
        api_version=request.kind.api_version,
    )


def generate_events(
    responses: list[EngineResponse],
    request: AdmissionRequest,
    source: Source = Source.ADMISSION_CONTROLLER,
) -> list[Event]:
    """One event per triggered policy, regarding the policy, related to the resource."""
    resource = resource_reference(request)
    events: list[Event] = []
    for response in responses:
        if not is_triggered(response):
            continue
        policy = response.policy
        success = response.is_successful()
        events.append(
            Event(
                regarding=ObjectReference(
                    kind=policy.kind, name=policy.name, namespace=policy.namespace
                ),
                related=resource,
                reason=_reason(response),
                message=_summarize(response, resource),
                success=success,
                source=source,
            )
        )
    return events


def _reason(response: EngineResponse) -> Reason:
    if any(rule.status == RuleStatus.ERROR for rule in response.rules):
        return Reason.POLICY_ERROR
    if response.is_successful():
        return Reason.POLICY_APPLIED
    return Reason.POLICY_VIOLATION


def _summarize(response: EngineResponse, resource: ObjectReference) -> str:
    parts: list[str] = []
    for rule in response.rules:
        if rule.status == RuleStatus.SKIP:
            continue
        if rule.status == RuleStatus.PASS:
            parts.append(f"rule {rule.name} applied")
        else:
            parts.append(f"rule {rule.name} {rule.status.value}: {rule.message}")
    return f"policy {response.policy.name} on {resource}: " + "; ".join(parts)
