"""
Error taxonomy and process exit handling for admitlayer.

Per-request errors (``PolicyApplicationError``) stay local to one admission
request. Bootstrap errors (``CacheSyncTimeout``, ``LeadershipInitError``)
are unrecoverable for the process instance; ``main_with_error_handling``
turns them into a non-zero exit code and the process supervisor restarts us.

Exit Codes:
- 0: Success
- 10: Configuration error
- 20: Informer caches failed to sync
- 21: Leader election failed to initialize
- 127: Unknown/internal error
- 130: Interrupted
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Process exit codes."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    CACHE_SYNC_TIMEOUT = 20
    LEADERSHIP_ERROR = 21
    UNKNOWN_ERROR = 127
    INTERRUPTED = 130


class AdmitLayerError(Exception):
    """Base exception for admitlayer errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(AdmitLayerError):
    """Raised for configuration-related errors."""

    exit_code = ExitCode.CONFIG_ERROR


class PolicyApplicationError(AdmitLayerError):
    """A policy's mutation failed or its result was rejected by schema validation."""

    def __init__(
        self,
        message: str,
        policy: str,
        failed_rules: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.policy = policy
        self.failed_rules = failed_rules or []


class CacheSyncTimeout(AdmitLayerError):
    """Informer caches did not become ready in time."""

    exit_code = ExitCode.CACHE_SYNC_TIMEOUT


class LeadershipInitError(AdmitLayerError):
    """The leadership primitive could not be initialized."""

    exit_code = ExitCode.LEADERSHIP_ERROR


class EventQueueOverflow(AdmitLayerError):
    """The event queue is at capacity; the event was dropped."""


F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for process entry points that maps exceptions to exit codes.

    Exit codes:
        - AdmitLayerError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130
        - Other exceptions: Returns 127
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except AdmitLayerError as e:
                if log_errors:
                    logger.error(
                        "process_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=int(e.exit_code),
                        **e.details,
                    )
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("process_interrupted")
                return ExitCode.INTERRUPTED
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=int(ExitCode.UNKNOWN_ERROR),
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: AdmitLayerError) -> str:
    """Format an error message for logs and admission responses."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
