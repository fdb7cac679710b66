from __future__ import annotations

"""Startup handshake with the chat server.

On startup, and again whenever the connection is regained, the client
registers an event queue (which also returns a snapshot of nearly all
session data), asks the server which version it runs, and then hands the
queue over to the event poller. See :meth:`BootstrapOrchestrator.run`.
"""

import asyncio
import enum
import logging
from typing import Any, Awaitable, Callable, Mapping, Protocol, TypeVar

from chatsync.foundation.common import MIN_RECENT_PM_VERSION, ServerVersion

from . import configuration
from . import metrics as sync_metrics
from .api_client import Auth
from .backoff import BackoffMachine
from .fetch_coordinator import FetchCoordinator, MessagesApi
from .retry import try_fetch
from .session_state import SessionStateReader
from .signals import (
    Dispatch,
    InitialFetchComplete,
    InitialFetchStart,
    InitNotifications,
    Logout,
    RealmInit,
    SendOutbox,
    StartEventPolling,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

CLIENT_CAPABILITIES: Mapping[str, bool] = {
    "notification_settings_null": True,
    "bulk_message_deletion": True,
    "user_avatar_url_field_optional": True,
}


class BootstrapApi(MessagesApi, Protocol):
    async def register_queue(
        self,
        auth: Auth,
        *,
        fetch_event_types: list[str],
        apply_markdown: bool = True,
        include_subscribers: bool = False,
        client_gravatar: bool = True,
        client_capabilities: Mapping[str, bool] | None = None,
    ) -> dict[str, Any]: ...

    async def get_server_settings(self, realm: str) -> dict[str, Any]: ...


class BootstrapState(enum.IntEnum):
    IDLE = 0
    FETCHING_INITIAL_DATA = 1
    READY = 2
    LOGGED_OUT = 3


class BootstrapOrchestrator:
    """Run the startup handshake once per (re)connection."""

    def __init__(
        self,
        api: BootstrapApi,
        state: SessionStateReader,
        dispatch: Dispatch,
        coordinator: FetchCoordinator | None = None,
        *,
        backoff_factory: Callable[[], BackoffMachine] | None = None,
        fetch_event_types: list[str] | None = None,
    ) -> None:
        self._api = api
        self._state_reader = state
        self._dispatch = dispatch
        self._coordinator = coordinator or FetchCoordinator(api, state, dispatch)
        self._backoff_factory = backoff_factory or BackoffMachine
        self._fetch_event_types = fetch_event_types
        self._state = BootstrapState.IDLE

    @property
    def state(self) -> BootstrapState:
        return self._state

    def _transition(self, new_state: BootstrapState) -> None:
        self._state = new_state
        sync_metrics.set_bootstrap_state(int(new_state))

    def _event_types(self) -> list[str]:
        if self._fetch_event_types is not None:
            return list(self._fetch_event_types)
        return list(configuration.get_fetch_config().server_data_on_startup)

    async def _retrying(self, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        return await try_fetch(func, backoff=self._backoff_factory(), operation=operation)

    async def _fetch_initial_data(self, auth: Auth) -> tuple[dict[str, Any], dict[str, Any]]:
        # Nothing passed to register_queue depends on the server version. If
        # that changes, the version must come from this run's settings fetch,
        # not from a previous session's.
        register = asyncio.ensure_future(
            self._retrying(
                "register",
                lambda: self._api.register_queue(
                    auth,
                    fetch_event_types=self._event_types(),
                    apply_markdown=True,
                    include_subscribers=False,
                    client_gravatar=True,
                    client_capabilities=dict(CLIENT_CAPABILITIES),
                ),
            )
        )
        settings = asyncio.ensure_future(
            self._retrying("server_settings", lambda: self._api.get_server_settings(auth.realm))
        )
        try:
            init_data, server_settings = await asyncio.gather(register, settings)
        except BaseException:
            for task in (register, settings):
                task.cancel()
            await asyncio.gather(register, settings, return_exceptions=True)
            raise
        return init_data, server_settings

    async def run(self) -> BootstrapState:
        """Fetch initial data and start the event queue.

        Both startup calls retry transient failures indefinitely. A client
        error from either only happens when the credentials are no longer
        valid, so the session is logged out and nothing fetched is applied.
        On servers too old to report recent private conversations, the
        legacy fetch starts before the outbox is flushed and is awaited only
        after notifications are initialised. Returns the resulting state.
        """

        if self._state is BootstrapState.FETCHING_INITIAL_DATA:
            raise RuntimeError("bootstrap already in progress")

        self._transition(BootstrapState.FETCHING_INITIAL_DATA)
        self._dispatch(InitialFetchStart())
        auth = self._state_reader.get_auth()
        logger.info("bootstrap.start", extra={"realm": auth.realm})

        try:
            init_data, server_settings = await self._fetch_initial_data(auth)
        except Exception as exc:
            self._transition(BootstrapState.LOGGED_OUT)
            sync_metrics.observe_bootstrap("logout")
            logger.warning("bootstrap.logout", extra={"realm": auth.realm, "error": repr(exc)})
            self._dispatch(Logout())
            return self._state
        except asyncio.CancelledError:
            self._transition(BootstrapState.IDLE)
            raise

        server_version = ServerVersion(server_settings["zulip_version"])
        if not server_version.is_known:
            logger.warning("bootstrap.unknown_version", extra={"server_version": server_version.raw})

        self._dispatch(RealmInit(initial_data=init_data, server_version=server_version))
        self._transition(BootstrapState.READY)
        self._dispatch(InitialFetchComplete())
        self._dispatch(StartEventPolling(init_data["queue_id"], init_data["last_event_id"]))
        sync_metrics.observe_bootstrap("ready")
        logger.info(
            "bootstrap.ready",
            extra={"realm": auth.realm, "server_version": str(server_version), "queue_id": init_data["queue_id"]},
        )

        legacy_fetch = None
        if not server_version.is_at_least(MIN_RECENT_PM_VERSION):
            legacy_fetch = asyncio.ensure_future(self._fetch_legacy_private_messages(server_version))

        self._dispatch(SendOutbox())
        self._dispatch(InitNotifications())
        if legacy_fetch is not None:
            try:
                await legacy_fetch
            except asyncio.CancelledError:
                legacy_fetch.cancel()
                raise
        return self._state

    async def _fetch_legacy_private_messages(self, server_version: ServerVersion) -> None:
        logger.info("bootstrap.legacy_fetch", extra={"server_version": str(server_version)})
        try:
            await self._coordinator.fetch_private_messages()
        except Exception as exc:
            # The conversations list just stays empty until a narrow is opened.
            logger.warning("bootstrap.legacy_fetch_failed", extra={"error": repr(exc)}, exc_info=True)


__all__ = [
    "BootstrapApi",
    "BootstrapOrchestrator",
    "BootstrapState",
    "CLIENT_CAPABILITIES",
]
