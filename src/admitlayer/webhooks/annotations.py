"""
Annotation patch recording which policies and rules mutated an object.

The value is one line per applied patch operation::

    <rule>.<policy>.admitlayer.io: added /metadata/labels/team
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

import structlog

from admitlayer.engine.api import EngineResponse, RuleStatus
from admitlayer.webhooks.patches import decode_operations, encode_operation, escape_pointer

logger = structlog.get_logger()

LAST_APPLIED_PATCHES = "policies.admitlayer.io/last-applied-patches"

_VERBS = {
    "add": "added",
    "replace": "replaced",
    "remove": "removed",
    "move": "moved",
    "copy": "copied",
}


def applied_patch_lines(responses: Iterable[EngineResponse]) -> list[str]:
    lines: list[str] = []
    for response in responses:
        for rule in response.rules:
            if rule.status != RuleStatus.PASS:
                continue
            for patch in rule.patches:
                for operation in decode_operations(patch):
                    verb = _VERBS.get(operation.get("op", ""))
                    if verb is None:
                        continue
                    lines.append(
                        f"{rule.name}.{response.policy.name}.admitlayer.io: "
                        f"{verb} {operation.get('path', '')}"
                    )
    return lines


def generate_annotation_patches(
    responses: list[EngineResponse],
    resource: Mapping[str, Any],
) -> list[bytes]:
    """Build the trailing annotation fragment.

    ``resource`` is the object as it stands after every policy patch, which
    is the document this fragment will be applied to. Returns an empty list
    when no rule applied a patch.
    """
    lines = applied_patch_lines(responses)
    if not lines:
        return []

    value = "\n".join(lines) + "\n"
    metadata = resource.get("metadata")
    annotations = (metadata or {}).get("annotations") or {}
    key_path = f"/metadata/annotations/{escape_pointer(LAST_APPLIED_PATCHES)}"

    if LAST_APPLIED_PATCHES in annotations:
        operation = {"op": "replace", "path": key_path, "value": value}
    elif annotations:
        operation = {"op": "add", "path": key_path, "value": value}
    elif metadata is None:
        operation = {
            "op": "add",
            "path": "/metadata",
            "value": {"annotations": {LAST_APPLIED_PATCHES: value}},
        }
    else:
        operation = {
            "op": "add",
            "path": "/metadata/annotations",
            "value": {LAST_APPLIED_PATCHES: value},
        }

    logger.debug("annotation_patch_generated", op=operation["op"], rules=len(lines))
    return [encode_operation(operation)]
