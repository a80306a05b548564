"""
Background controller process bootstrap.

Lifecycle::

    INITIALIZING -> ALWAYS_ON_RUNNING -> STANDBY_FOR_LEADERSHIP <-> LEADER_ACTIVE
                                       -> SHUTTING_DOWN

Always-on work (event drain workers and any always-on controllers) starts
once its caches have synced and runs for the process lifetime. Every
leadership term builds a fresh ``LeaderTerm`` bundle of informer factories
and controllers, syncs it, runs the controllers concurrently, and shuts the
factories down when the term ends. A term never reuses another term's
caches. Cache sync failures and leader election init failures are fatal.
"""

from __future__ import annotations

import asyncio
import signal
import socket
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Callable, Sequence

import structlog

from admitlayer.config import Settings, get_settings
from admitlayer.controllers.controller import Controller, Runner
from admitlayer.core.errors import CacheSyncTimeout, ExitCode, main_with_error_handling
from admitlayer.event.generator import EventGenerator
from admitlayer.event.sink import EventSink, HTTPEventSink, LoggingEventSink
from admitlayer.informers import (
    InformerFactory,
    shutdown_informers,
    start_informers_and_wait_for_cache_sync,
)
from admitlayer.leaderelection import LeaderElector, RedisLeaderElector
from admitlayer.logging import configure_logging

logger = structlog.get_logger()

InformerFactoryBuilder = Callable[[], Sequence[InformerFactory]]
LeaderControllerBuilder = Callable[[Sequence[InformerFactory]], Sequence[Controller]]


class BootstrapState(StrEnum):
    INITIALIZING = "initializing"
    ALWAYS_ON_RUNNING = "always_on_running"
    STANDBY_FOR_LEADERSHIP = "standby_for_leadership"
    LEADER_ACTIVE = "leader_active"
    SHUTTING_DOWN = "shutting_down"


@dataclass
class LeaderTerm:
    """Caches and controllers owned by one leadership term."""

    number: int
    factories: list[InformerFactory]
    controllers: list[Controller]


@dataclass
class BootstrapComponents:
    event_generator: EventGenerator
    elector: LeaderElector
    leader_informers: InformerFactoryBuilder
    leader_controllers: LeaderControllerBuilder
    always_on_informers: InformerFactoryBuilder = field(default=lambda: ())
    always_on_controllers: Sequence[Controller] = ()


class BackgroundControllerBootstrap:
    def __init__(self, components: BootstrapComponents, settings: Settings) -> None:
        self._components = components
        self._settings = settings
        self.state = BootstrapState.INITIALIZING
        self.term: LeaderTerm | None = None
        self.terms_started = 0

    async def run(self) -> None:
        factories = list(self._components.always_on_informers())
        try:
            if not await start_informers_and_wait_for_cache_sync(
                *factories, timeout=self._settings.cache_sync_timeout
            ):
                raise CacheSyncTimeout("failed to wait for cache sync", details={"stage": "always_on"})

            async with asyncio.TaskGroup() as tg:
                tg.create_task(
                    self._components.event_generator.run(self._settings.event_workers),
                    name="event-generator",
                )
                for controller in self._components.always_on_controllers:
                    tg.create_task(controller.run(), name=controller.name)
                self.state = BootstrapState.ALWAYS_ON_RUNNING
                logger.info(
                    "always_on_started",
                    controllers=[c.name for c in self._components.always_on_controllers],
                )

                self.state = BootstrapState.STANDBY_FOR_LEADERSHIP
                tg.create_task(self._components.elector.run(self._lead), name="leader-election")
        except BaseExceptionGroup as group:
            raise _first_leaf(group) from group
        finally:
            self.state = BootstrapState.SHUTTING_DOWN
            shutdown_informers(*factories)
            logger.info("bootstrap_stopped", terms=self.terms_started)

    async def _lead(self) -> None:
        self.terms_started += 1
        number = self.terms_started
        log = logger.bind(term=number)

        factories: list[InformerFactory] = []
        try:
            factories.extend(self._components.leader_informers())
            controllers = list(self._components.leader_controllers(factories))
            self.term = LeaderTerm(number=number, factories=factories, controllers=controllers)
            self.state = BootstrapState.LEADER_ACTIVE
            if not await start_informers_and_wait_for_cache_sync(
                *factories, timeout=self._settings.cache_sync_timeout
            ):
                raise CacheSyncTimeout(
                    "failed to wait for cache sync", details={"stage": "leader", "term": number}
                )
            log.info("leader_term_started", controllers=[c.name for c in controllers])
            async with asyncio.TaskGroup() as tg:
                for controller in controllers:
                    tg.create_task(controller.run(), name=f"{controller.name}-term-{number}")
        finally:
            shutdown_informers(*factories)
            self.term = None
            if self.state is BootstrapState.LEADER_ACTIVE:
                self.state = BootstrapState.STANDBY_FOR_LEADERSHIP
            log.info("leader_term_ended")


def _first_leaf(group: BaseExceptionGroup) -> BaseException:
    first = group.exceptions[0]
    if isinstance(first, BaseExceptionGroup):
        return _first_leaf(first)
    return first


def create_leader_controllers(
    settings: Settings,
    policy_controller: Runner,
    background_controller: Runner,
) -> list[Controller]:
    return [
        Controller("policy-controller", policy_controller, settings.policy_controller_workers),
        Controller("background-controller", background_controller, settings.gen_workers),
    ]


def create_event_generator(settings: Settings) -> EventGenerator:
    """Event queue sized from settings, posting to the collector when one is configured."""
    sink: EventSink
    if settings.event_sink_url:
        sink = HTTPEventSink(settings.event_sink_url, timeout=settings.http_timeout)
    else:
        sink = LoggingEventSink()
    return EventGenerator(
        sink,
        settings.max_queued_events,
        max_retries=settings.event_sink_max_retries,
    )


def create_elector(settings: Settings) -> RedisLeaderElector:
    return RedisLeaderElector(
        settings.leader_election_id,
        settings.pod_name or socket.gethostname(),
        namespace=settings.leader_election_namespace,
        redis_url=settings.redis_url,
        lease_duration=settings.leader_election_lease_duration,
        retry_period=settings.leader_election_retry_period,
    )


def create_components(
    settings: Settings,
    *,
    leader_informers: InformerFactoryBuilder,
    leader_controllers: LeaderControllerBuilder,
    always_on_informers: InformerFactoryBuilder = lambda: (),
    always_on_controllers: Sequence[Controller] = (),
) -> BootstrapComponents:
    """Wire the settings-driven event queue and elector around the given informers and controllers."""
    return BootstrapComponents(
        event_generator=create_event_generator(settings),
        elector=create_elector(settings),
        leader_informers=leader_informers,
        leader_controllers=leader_controllers,
        always_on_informers=always_on_informers,
        always_on_controllers=always_on_controllers,
    )


async def serve(bootstrap: BackgroundControllerBootstrap) -> None:
    """Run until SIGINT/SIGTERM cancels the process task."""
    task = asyncio.current_task()
    assert task is not None
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, task.cancel)
    try:
        await bootstrap.run()
    except asyncio.CancelledError:
        logger.info("shutdown_requested")
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)


@main_with_error_handling()
def main(
    build_components: Callable[[Settings], BootstrapComponents],
    settings: Settings | None = None,
) -> int:
    settings = settings or get_settings()
    configure_logging(settings.log_level, component="background-controller", json=settings.log_json)
    components = build_components(settings)
    asyncio.run(serve(BackgroundControllerBootstrap(components, settings)))
    return ExitCode.SUCCESS
