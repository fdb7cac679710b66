"""Public API surface for the chatsync package."""

from __future__ import annotations

from chatsync.foundation.common import MIN_RECENT_PM_VERSION, ServerVersion
from chatsync.runtime import (
    Auth,
    BootstrapOrchestrator,
    BootstrapState,
    ChatApiClient,
    FetchCoordinator,
    SessionStore,
    try_fetch,
)

__version__ = "0.1.0"

__all__ = [
    "Auth",
    "BootstrapOrchestrator",
    "BootstrapState",
    "ChatApiClient",
    "FetchCoordinator",
    "MIN_RECENT_PM_VERSION",
    "ServerVersion",
    "SessionStore",
    "try_fetch",
]
