"""Message synchronization and bootstrap for chat clients."""

from .anchor import FIRST_UNREAD_ANCHOR, NEWEST_ANCHOR, Anchor
from .api_client import Auth, ChatApiClient
from .backoff import BackoffMachine
from .bootstrap import BootstrapOrchestrator, BootstrapState
from .exceptions import (
    ApiError,
    ClientApiError,
    NetworkError,
    ServerApiError,
    is_client_error,
)
from .fetch_coordinator import FetchCoordinator
from .fetch_window import FetchWindow, centered_window, newer_window, older_window
from .narrow import (
    ALL_PRIVATE_NARROW,
    HOME_NARROW,
    MENTIONED_NARROW,
    STARRED_NARROW,
    Narrow,
    PmNarrow,
    SearchNarrow,
    StreamNarrow,
    TopicNarrow,
    api_narrow_of_narrow,
    parse_narrow,
)
from .retry import try_fetch
from .session_state import ScopeFetchState, SessionStateReader, SessionStore
from .signals import Signal, SignalRecorder

__all__ = [
    "ALL_PRIVATE_NARROW",
    "Anchor",
    "ApiError",
    "Auth",
    "BackoffMachine",
    "BootstrapOrchestrator",
    "BootstrapState",
    "ChatApiClient",
    "ClientApiError",
    "FIRST_UNREAD_ANCHOR",
    "FetchCoordinator",
    "FetchWindow",
    "HOME_NARROW",
    "MENTIONED_NARROW",
    "NEWEST_ANCHOR",
    "Narrow",
    "NetworkError",
    "PmNarrow",
    "STARRED_NARROW",
    "ScopeFetchState",
    "SearchNarrow",
    "ServerApiError",
    "SessionStateReader",
    "SessionStore",
    "Signal",
    "SignalRecorder",
    "StreamNarrow",
    "TopicNarrow",
    "api_narrow_of_narrow",
    "centered_window",
    "is_client_error",
    "newer_window",
    "older_window",
    "parse_narrow",
    "try_fetch",
]
