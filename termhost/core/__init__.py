"""Core module - configuration, logging, errors and the application context."""

from termhost.core.config import Settings, get_settings
from termhost.core.exceptions import MessageError, SpawnError, TermhostError

__all__ = [
    "MessageError",
    "Settings",
    "SpawnError",
    "TermhostError",
    "get_settings",
]
