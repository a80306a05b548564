"""Core modules for admitlayer - error taxonomy and exit handling."""

from admitlayer.core.errors import (
    AdmitLayerError,
    CacheSyncTimeout,
    ConfigurationError,
    EventQueueOverflow,
    ExitCode,
    LeadershipInitError,
    PolicyApplicationError,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "AdmitLayerError",
    "ConfigurationError",
    "PolicyApplicationError",
    "CacheSyncTimeout",
    "LeadershipInitError",
    "EventQueueOverflow",
    "main_with_error_handling",
    "format_error_message",
]
