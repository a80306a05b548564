"""JSON patch fragment helpers."""

from __future__ import annotations

import json
from typing import Any


def join_patches(*patches: bytes) -> bytes | None:
    """Join patch fragments, in order, into one RFC 6902 document.

    Each fragment is a single operation object or an array of operations.
    Returns ``None`` when there is nothing to join.
    """
    if not patches:
        return None
    operations: list[bytes] = []
    for patch in patches:
        stripped = patch.strip()
        if stripped.startswith(b"["):
            operations.extend(encode_operation(op) for op in json.loads(stripped))
        elif stripped:
            operations.append(stripped)
    return b"[" + b",".join(operations) + b"]"


def encode_operation(operation: dict[str, Any]) -> bytes:
    return json.dumps(operation, separators=(",", ":")).encode()


def decode_operations(patch: bytes) -> list[dict[str, Any]]:
    decoded = json.loads(patch)
    return decoded if isinstance(decoded, list) else [decoded]


def escape_pointer(token: str) -> str:
    """Escape a single JSON pointer reference token."""
    return token.replace("~", "~0").replace("/", "~1")
