from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Protocol

import structlog

logger = structlog.get_logger()


class Runner(Protocol):
    """A reconciliation loop. ``run`` returns only when cancelled."""

    async def run(self, workers: int) -> None: ...


@dataclass
class Controller:
    """A named reconciliation unit with a fixed worker count."""

    name: str
    runner: Runner
    workers: int = 1

    async def run(self) -> None:
        log = logger.bind(controller=self.name, workers=self.workers)
        log.info("controller_starting")
        try:
            await self.runner.run(self.workers)
        except asyncio.CancelledError:
            log.info("controller_stopped")
            raise
        log.info("controller_returned")
