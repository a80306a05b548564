"""
Leader election.

``LeaderElector.run(on_acquired)`` awaits ``on_acquired()`` once per
leadership term, in a task of its own. Losing the lease cancels that task
and only that task; cancelling ``run`` itself ends the current term and
releases the lease.

``RedisLeaderElector`` holds the lease as a Redis key set with ``NX PX``
and renews it with a compare-and-expire script every retry period.
The store is pinged once before the first acquisition; an unreachable
store is a ``LeadershipInitError``. Later Redis errors are retried.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Protocol

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from admitlayer.core.errors import LeadershipInitError

logger = structlog.get_logger()

OnAcquired = Callable[[], Awaitable[None]]

_RENEW_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('PEXPIRE', KEYS[1], ARGV[2])
end
return 0
"""

_RELEASE_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""


class LeaderElector(Protocol):
    async def run(self, on_acquired: OnAcquired) -> None: ...


class RedisLeaderElector:
    def __init__(
        self,
        name: str,
        identity: str,
        *,
        namespace: str = "admitlayer",
        redis_url: str | None = None,
        redis_client: aioredis.Redis | None = None,
        lease_duration: float = 15.0,
        retry_period: float = 2.0,
    ) -> None:
        if not name:
            raise LeadershipInitError("leader election name is required")
        if not identity:
            raise LeadershipInitError("leader election identity is required")
        if lease_duration <= retry_period:
            raise LeadershipInitError(
                "lease duration must exceed the retry period",
                details={"lease_duration": lease_duration, "retry_period": retry_period},
            )
        if redis_client is None:
            if not redis_url:
                raise LeadershipInitError("a redis url or client is required")
            try:
                redis_client = aioredis.Redis.from_url(redis_url, decode_responses=True)
            except ValueError as exc:
                raise LeadershipInitError(f"invalid redis url: {exc}") from exc

        self.name = name
        self.identity = identity
        self._key = f"{namespace}:leases:{name}"
        self._client = redis_client
        self._lease_ms = int(lease_duration * 1000)
        self._retry_period = retry_period
        self.is_leader = False
        self.terms = 0
        self._log = logger.bind(lease=self._key, identity=identity)

    async def run(self, on_acquired: OnAcquired) -> None:
        await self._check_connection()
        try:
            while True:
                await self._acquire()
                await self._lead(on_acquired)
                await asyncio.sleep(self._retry_period)
        finally:
            if self.is_leader:
                await self._release()

    async def _check_connection(self) -> None:
        """Fail fast when the lock store is unreachable at startup."""
        try:
            await self._client.ping()
        except RedisError as exc:
            raise LeadershipInitError(
                f"leader election store unreachable: {exc}", details={"lease": self._key}
            ) from exc

    async def _acquire(self) -> None:
        while True:
            try:
                if await self._client.set(self._key, self.identity, nx=True, px=self._lease_ms):
                    break
                if await self._client.get(self._key) == self.identity:
                    break
            except RedisError as exc:
                self._log.warning("leader_acquire_error", error=str(exc))
            await asyncio.sleep(self._retry_period)
        self.is_leader = True
        self.terms += 1
        self._log.info("leader_acquired", term=self.terms)

    async def _lead(self, on_acquired: OnAcquired) -> None:
        term = asyncio.create_task(on_acquired(), name=f"{self.name}-term-{self.terms}")
        try:
            while not term.done():
                done, _ = await asyncio.wait({term}, timeout=self._retry_period)
                if done:
                    break
                if not await self._renew():
                    self._log.warning("leader_lost", term=self.terms)
                    self.is_leader = False
                    term.cancel()
                    break
        except asyncio.CancelledError:
            term.cancel()
            await asyncio.wait({term})
            raise

        await asyncio.wait({term})
        if term.cancelled():
            return
        if self.is_leader:
            await self._release()
        exc = term.exception()
        if exc is not None:
            raise exc
        self._log.info("leader_term_completed", term=self.terms)

    async def _renew(self) -> bool:
        try:
            renewed = await self._client.eval(_RENEW_SCRIPT, 1, self._key, self.identity, self._lease_ms)
        except RedisError as exc:
            self._log.warning("leader_renew_error", error=str(exc))
            return False
        return bool(renewed)

    async def _release(self) -> None:
        self.is_leader = False
        try:
            await self._client.eval(_RELEASE_SCRIPT, 1, self._key, self.identity)
            self._log.info("leader_released")
        except RedisError as exc:
            self._log.warning("leader_release_error", error=str(exc))

    async def aclose(self) -> None:
        await self._client.aclose()
