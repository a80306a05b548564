"""
Informer factory contract and cache-readiness gating.

No controller may read from a cache before its informer has delivered the
initial full listing. ``start_informers_and_wait_for_cache_sync`` starts a
set of factories and reports whether every informer synced in time.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

import structlog

logger = structlog.get_logger()


class InformerFactory(Protocol):
    name: str

    def start(self) -> None: ...

    async def wait_for_cache_sync(self) -> dict[str, bool]:
        """Block until each informer syncs; returns informer name -> synced."""
        ...

    def shutdown(self) -> None: ...


async def start_informers_and_wait_for_cache_sync(
    *factories: InformerFactory,
    timeout: float,
) -> bool:
    for factory in factories:
        factory.start()

    try:
        async with asyncio.timeout(timeout):
            results = await asyncio.gather(*(f.wait_for_cache_sync() for f in factories))
    except TimeoutError:
        logger.error(
            "cache_sync_timeout",
            factories=[f.name for f in factories],
            timeout=timeout,
        )
        return False

    for factory, result in zip(factories, results):
        pending = [informer for informer, synced in result.items() if not synced]
        if pending:
            logger.error("cache_sync_failed", factory=factory.name, informers=pending)
            return False

    logger.info("caches_synced", factories=[f.name for f in factories])
    return True


def shutdown_informers(*factories: InformerFactory) -> None:
    for factory in factories:
        factory.shutdown()


class NamespaceLabelCache:
    """Namespace labels mirrored from a namespace informer.

    Lookups for unknown namespaces return no labels.
    """

    def __init__(self) -> None:
        self._labels: dict[str, dict[str, str]] = {}

    def on_namespace(self, namespace: dict) -> None:
        metadata = namespace.get("metadata") or {}
        self._labels[metadata["name"]] = dict(metadata.get("labels") or {})

    def on_namespace_deleted(self, name: str) -> None:
        self._labels.pop(name, None)

    async def labels_for(self, kind: str, namespace: str) -> dict[str, str]:
        labels = self._labels.get(namespace)
        if labels is None:
            logger.debug("namespace_not_cached", kind=kind, namespace=namespace)
            return {}
        return dict(labels)
