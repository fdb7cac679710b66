from __future__ import annotations

"""Session state as seen by the sync core.

The core never mutates session state directly. It reads it through a
:class:`SessionStateReader` before deciding to act and reports what happened
through signals. :class:`SessionStore` is an in-memory implementation of
both halves: it answers the reader queries and applies each signal
synchronously inside :meth:`SessionStore.dispatch`.
"""

import bisect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol, runtime_checkable

from chatsync.foundation.common import ServerVersion

from .api_client import Auth
from .narrow import Narrow
from .signals import (
    AddToOutbox,
    InitialFetchComplete,
    InitialFetchStart,
    Logout,
    MessageFetchComplete,
    MessageFetchError,
    MessageFetchStart,
    RealmInit,
    Signal,
    StartEventPolling,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScopeFetchState:
    """Per-narrow pagination flags and known message boundaries."""

    fetching_older: bool = False
    fetching_newer: bool = False
    caught_up_older: bool = False
    caught_up_newer: bool = False
    first_message_id: int | None = None
    last_message_id: int | None = None


@runtime_checkable
class SessionStateReader(Protocol):
    def needs_initial_fetch(self) -> bool: ...

    def get_auth(self) -> Auth: ...

    def get_own_user_id(self) -> int: ...

    def get_users_by_id(self) -> Mapping[int, str]: ...

    def get_fetch_state(self, narrow: Narrow) -> ScopeFetchState: ...


@dataclass
class _NarrowRecord:
    message_ids: list[int] = field(default_factory=list)
    fetching_older: bool = False
    fetching_newer: bool = False
    caught_up_older: bool = False
    caught_up_newer: bool = False


class SessionStore:
    """In-memory session state driven by dispatched signals."""

    def __init__(
        self,
        auth: Auth,
        *,
        own_user_id: int | None = None,
        users_by_id: Mapping[int, str] | None = None,
    ) -> None:
        self._auth = auth
        self._own_user_id = own_user_id
        self._users_by_id: dict[int, str] = dict(users_by_id or {})
        self._narrows: dict[Narrow, _NarrowRecord] = {}
        self._messages: dict[int, Mapping[str, Any]] = {}
        self._needs_initial_fetch = True
        self.loading = False
        self.logged_out = False
        self.initial_data: Mapping[str, Any] | None = None
        self.server_version: ServerVersion | None = None
        self.queue_id: str | None = None
        self.last_event_id: int | None = None
        self.outbox: list[AddToOutbox] = []
        self._handlers: dict[type, Callable[[Any], None]] = {
            MessageFetchStart: self._on_fetch_start,
            MessageFetchComplete: self._on_fetch_complete,
            MessageFetchError: self._on_fetch_error,
            InitialFetchStart: self._on_initial_fetch_start,
            InitialFetchComplete: self._on_initial_fetch_complete,
            RealmInit: self._on_realm_init,
            Logout: self._on_logout,
            StartEventPolling: self._on_start_event_polling,
            AddToOutbox: self.outbox.append,
        }

    # --- reader -----------------------------------------------------------
    def needs_initial_fetch(self) -> bool:
        return self._needs_initial_fetch

    def get_auth(self) -> Auth:
        return self._auth

    def get_own_user_id(self) -> int:
        if self._own_user_id is None:
            raise LookupError("own user id is unknown before the initial fetch")
        return self._own_user_id

    def get_users_by_id(self) -> Mapping[int, str]:
        return self._users_by_id

    def get_fetch_state(self, narrow: Narrow) -> ScopeFetchState:
        record = self._narrows.get(narrow)
        if record is None:
            return ScopeFetchState()
        ids = record.message_ids
        return ScopeFetchState(
            fetching_older=record.fetching_older,
            fetching_newer=record.fetching_newer,
            caught_up_older=record.caught_up_older,
            caught_up_newer=record.caught_up_newer,
            first_message_id=ids[0] if ids else None,
            last_message_id=ids[-1] if ids else None,
        )

    def message_ids(self, narrow: Narrow) -> list[int]:
        record = self._narrows.get(narrow)
        return list(record.message_ids) if record else []

    def get_message(self, message_id: int) -> Mapping[str, Any] | None:
        return self._messages.get(message_id)

    # --- writer -----------------------------------------------------------
    def dispatch(self, signal: Signal) -> None:
        handler = self._handlers.get(type(signal))
        if handler is not None:
            handler(signal)

    __call__ = dispatch

    def seed(self, narrow: Narrow, state: ScopeFetchState) -> None:
        """Install fetch flags for ``narrow`` directly, bypassing signals."""

        record = self._record(narrow)
        record.fetching_older = state.fetching_older
        record.fetching_newer = state.fetching_newer
        record.caught_up_older = state.caught_up_older
        record.caught_up_newer = state.caught_up_newer
        ids = [i for i in (state.first_message_id, state.last_message_id) if i is not None]
        record.message_ids = sorted(set(record.message_ids) | set(ids))

    def _record(self, narrow: Narrow) -> _NarrowRecord:
        record = self._narrows.get(narrow)
        if record is None:
            record = self._narrows[narrow] = _NarrowRecord()
        return record

    def _on_fetch_start(self, signal: MessageFetchStart) -> None:
        record = self._record(signal.narrow)
        if signal.num_before > 0:
            record.fetching_older = True
        if signal.num_after > 0:
            record.fetching_newer = True

    def _on_fetch_complete(self, signal: MessageFetchComplete) -> None:
        record = self._record(signal.narrow)
        if signal.num_before > 0:
            record.fetching_older = False
        if signal.num_after > 0:
            record.fetching_newer = False
        record.caught_up_older = record.caught_up_older or bool(signal.found_oldest)
        record.caught_up_newer = record.caught_up_newer or bool(signal.found_newest)
        for message in signal.messages:
            message_id = message.get("id")
            if not isinstance(message_id, int):
                continue
            self._messages[message_id] = message
            idx = bisect.bisect_left(record.message_ids, message_id)
            if idx == len(record.message_ids) or record.message_ids[idx] != message_id:
                record.message_ids.insert(idx, message_id)

    def _on_fetch_error(self, signal: MessageFetchError) -> None:
        record = self._record(signal.narrow)
        record.fetching_older = False
        record.fetching_newer = False

    def _on_initial_fetch_start(self, _: InitialFetchStart) -> None:
        self.loading = True

    def _on_initial_fetch_complete(self, _: InitialFetchComplete) -> None:
        self.loading = False
        self._needs_initial_fetch = False

    def _on_realm_init(self, signal: RealmInit) -> None:
        self.initial_data = signal.initial_data
        self.server_version = signal.server_version
        user_id = signal.initial_data.get("user_id")
        if isinstance(user_id, int):
            self._own_user_id = user_id
        for user in signal.initial_data.get("realm_users", ()) or ():
            uid = user.get("user_id")
            email = user.get("email")
            if isinstance(uid, int) and isinstance(email, str):
                self._users_by_id[uid] = email

    def _on_logout(self, _: Logout) -> None:
        logger.info("session.logout", extra={"realm": self._auth.realm})
        self.logged_out = True
        self.loading = False
        self._needs_initial_fetch = True
        self._narrows.clear()
        self._messages.clear()
        self.queue_id = None
        self.last_event_id = None

    def _on_start_event_polling(self, signal: StartEventPolling) -> None:
        self.queue_id = signal.queue_id
        self.last_event_id = signal.last_event_id


__all__ = [
    "ScopeFetchState",
    "SessionStateReader",
    "SessionStore",
]
