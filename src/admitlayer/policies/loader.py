"""
Policy manifest loading.

Reads ``ClusterPolicy``/``Policy`` manifests from a YAML file or a
directory of ``*.yaml``/``*.yml`` files. Multi-document files are
supported; documents of other kinds are ignored.
"""

from __future__ import annotations

from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError as PydanticValidationError

from admitlayer.core.errors import ConfigurationError
from admitlayer.domain.models import Policy

logger = structlog.get_logger()

POLICY_KINDS = frozenset({"ClusterPolicy", "Policy"})


def load_policies(path: str | Path) -> list[Policy]:
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"policy path not found: {path}")

    files = (
        sorted(p for p in path.iterdir() if p.suffix in (".yaml", ".yml"))
        if path.is_dir()
        else [path]
    )

    policies: list[Policy] = []
    for file in files:
        try:
            with open(file) as f:
                documents = [doc for doc in yaml.safe_load_all(f) if doc]
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"invalid policy manifest {file}: {exc}") from exc

        for doc in documents:
            if doc.get("kind") not in POLICY_KINDS:
                continue
            try:
                policies.append(Policy.from_manifest(doc))
            except (KeyError, PydanticValidationError) as exc:
                raise ConfigurationError(f"invalid policy in {file}: {exc}") from exc

    logger.info("policies_loaded", path=str(path), count=len(policies))
    return policies
