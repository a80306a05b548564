from __future__ import annotations

from typing import Any, Protocol

import httpx
import structlog
from circuitbreaker import CircuitBreaker

from admitlayer.event.models import Event

logger = structlog.get_logger()


class EventSink(Protocol):
    """Persists events. Raise ``RetryableSinkError`` for failures worth retrying."""

    async def emit(self, event: Event) -> None: ...


class LoggingEventSink:
    """Writes events to the structured log. Used when no collector is configured."""

    async def emit(self, event: Event) -> None:
        logger.info(
            "policy_event",
            reason=event.reason.value,
            type=event.type.value,
            regarding=str(event.regarding),
            source=event.source.value,
            message=event.message,
        )


class RetryableSinkError(Exception):
    """Transient sink failures. Only these are retried by the event generator."""


class RetryableHTTPError(RetryableSinkError):
    """HTTP errors that should be retried."""


class PermanentHTTPError(Exception):
    """HTTP errors that should not be retried."""


def is_retryable_status(status_code: int) -> bool:
    """Determine if HTTP status code is retryable."""
    return status_code in (408, 429, 500, 502, 503, 504)


class HTTPEventSink:
    """Posts events as JSON to an external collector.

    Retryable failures surface as ``RetryableHTTPError`` so the generator's
    retry loop can try again; repeated failures open the circuit and further
    events fail fast until ``circuit_recovery_timeout`` passes.
    """

    def __init__(
        self,
        base_url: str,
        *,
        path: str = "/events",
        timeout: float = 30.0,
        circuit_failure_threshold: int = 5,
        circuit_recovery_timeout: int = 60,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._path = path
        self._timeout = timeout
        self._client = client
        breaker = CircuitBreaker(
            failure_threshold=circuit_failure_threshold,
            recovery_timeout=circuit_recovery_timeout,
            expected_exception=RetryableHTTPError,
            name=f"event-sink:{self._base_url}",
        )
        self._post = breaker(self._post_once)

    async def emit(self, event: Event) -> None:
        await self._post(event.to_dict())

    async def _post_once(self, body: dict[str, Any]) -> None:
        url = f"{self._base_url}{self._path}"
        client = self._client or httpx.AsyncClient(timeout=self._timeout)
        try:
            response = await client.post(url, json=body)
            if is_retryable_status(response.status_code):
                logger.warning("event_sink_retryable_error", status=response.status_code, url=url)
                raise RetryableHTTPError(f"HTTP {response.status_code}: {response.text}")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "event_sink_permanent_error",
                status=exc.response.status_code,
                url=url,
                error=str(exc),
            )
            raise PermanentHTTPError(str(exc)) from exc
        except (httpx.TimeoutException, httpx.ConnectError, httpx.ReadError) as exc:
            logger.warning("event_sink_network_error", url=url, error=str(exc))
            raise RetryableHTTPError(str(exc)) from exc
        finally:
            if self._client is None:
                await client.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
