from __future__ import annotations

"""Signals emitted by the sync core.

Each signal is an immutable value. Consumers (a session store, a UI layer,
the event poller) receive them through a :data:`Dispatch` callable and apply
them in order.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence, Union

from chatsync.foundation.common import ServerVersion

from .anchor import Anchor
from .narrow import Narrow

Message = Mapping[str, Any]


@dataclass(frozen=True)
class MessageFetchStart:
    narrow: Narrow
    num_before: int
    num_after: int


@dataclass(frozen=True)
class MessageFetchComplete:
    messages: Sequence[Message]
    narrow: Narrow
    anchor: Anchor
    num_before: int
    num_after: int
    found_newest: bool
    found_oldest: bool
    own_user_id: int


@dataclass(frozen=True)
class MessageFetchError:
    narrow: Narrow
    error: BaseException


@dataclass(frozen=True)
class InitialFetchStart:
    pass


@dataclass(frozen=True)
class InitialFetchComplete:
    pass


@dataclass(frozen=True)
class RealmInit:
    """Initial data from ``/register`` plus the server's resolved version."""

    initial_data: Mapping[str, Any] = field(repr=False)
    server_version: ServerVersion


@dataclass(frozen=True)
class Logout:
    pass


@dataclass(frozen=True)
class StartEventPolling:
    queue_id: str
    last_event_id: int


@dataclass(frozen=True)
class SendOutbox:
    pass


@dataclass(frozen=True)
class InitNotifications:
    pass


@dataclass(frozen=True)
class AddToOutbox:
    narrow: Narrow
    content: str


Signal = Union[
    MessageFetchStart,
    MessageFetchComplete,
    MessageFetchError,
    InitialFetchStart,
    InitialFetchComplete,
    RealmInit,
    Logout,
    StartEventPolling,
    SendOutbox,
    InitNotifications,
    AddToOutbox,
]

Dispatch = Callable[[Signal], None]


class SignalRecorder:
    """Dispatch target that keeps every signal it receives."""

    def __init__(self, forward: Dispatch | None = None) -> None:
        self.signals: list[Signal] = []
        self._forward = forward

    def __call__(self, signal: Signal) -> None:
        self.signals.append(signal)
        if self._forward is not None:
            self._forward(signal)

    def of_type(self, kind: type) -> list[Any]:
        return [s for s in self.signals if isinstance(s, kind)]


__all__ = [
    "AddToOutbox",
    "Dispatch",
    "InitNotifications",
    "InitialFetchComplete",
    "InitialFetchStart",
    "Logout",
    "Message",
    "MessageFetchComplete",
    "MessageFetchError",
    "MessageFetchStart",
    "RealmInit",
    "SendOutbox",
    "Signal",
    "SignalRecorder",
    "StartEventPolling",
]
