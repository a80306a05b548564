"""
admitlayer configuration.

Pydantic-based settings loaded from ``ADMITLAYER_*`` environment variables
and an optional ``.env`` file.
"""

from admitlayer.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
