"""Test configuration and shared fixtures."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest
import yaml

from chatsync.foundation.config import BackoffConfig
from chatsync.runtime import configuration as sync_configuration
from chatsync.runtime import metrics as sync_metrics
from chatsync.runtime import runtime
from chatsync.runtime.api_client import Auth
from chatsync.runtime.backoff import BackoffMachine
from chatsync.runtime.session_state import SessionStore
from chatsync.runtime.signals import SignalRecorder

REALM = "https://chat.example.com"
OWN_USER_ID = 7
USERS_BY_ID = {7: "me@example.com", 11: "alice@example.com", 12: "bob@example.com"}


def _empty_page() -> dict[str, Any]:
    return {"result": "success", "messages": [], "found_newest": False, "found_oldest": False}


def default_initial_data() -> dict[str, Any]:
    return {
        "result": "success",
        "queue_id": "1517975029:0",
        "last_event_id": -1,
        "user_id": OWN_USER_ID,
        "realm_users": [{"user_id": uid, "email": email} for uid, email in USERS_BY_ID.items()],
    }


class FakeApi:
    """In-memory stand-in for :class:`ChatApiClient`.

    Each ``*_results`` list is consumed front to back; an exception instance
    is raised instead of returned. Once a list is empty the default answer is
    used.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.messages_results: list[Any] = []
        self.register_results: list[Any] = []
        self.settings_results: list[Any] = []
        self.server_version = "4.0"
        self.message_gate: asyncio.Event | None = None
        self.register_gate: asyncio.Event | None = None
        self.upload_uri = "/user_uploads/2/3f/report.pdf"

    @staticmethod
    def _next(queue: list[Any], default: Callable[[], Any]) -> Any:
        result = queue.pop(0) if queue else default()
        if isinstance(result, BaseException):
            raise result
        return result

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    def kwargs_of(self, name: str) -> list[dict[str, Any]]:
        return [kwargs for call, kwargs in self.calls if call == name]

    async def get_messages(
        self,
        auth: Auth,
        *,
        narrow,
        anchor,
        num_before: int,
        num_after: int,
        use_first_unread_anchor: bool = False,
    ) -> dict[str, Any]:
        self.calls.append(
            (
                "get_messages",
                {
                    "auth": auth,
                    "narrow": narrow,
                    "anchor": anchor,
                    "num_before": num_before,
                    "num_after": num_after,
                    "use_first_unread_anchor": use_first_unread_anchor,
                },
            )
        )
        if self.message_gate is not None:
            await self.message_gate.wait()
        return self._next(self.messages_results, _empty_page)

    async def register_queue(self, auth: Auth, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("register_queue", {"auth": auth, **kwargs}))
        if self.register_gate is not None:
            await self.register_gate.wait()
        return self._next(self.register_results, default_initial_data)

    async def get_server_settings(self, realm: str) -> dict[str, Any]:
        self.calls.append(("get_server_settings", {"realm": realm}))
        return self._next(
            self.settings_results,
            lambda: {"result": "success", "zulip_version": self.server_version},
        )

    async def upload_file(self, auth: Auth, path, name: str) -> dict[str, Any]:
        self.calls.append(("upload_file", {"auth": auth, "path": path, "name": name}))
        return {"result": "success", "uri": self.upload_uri}


@pytest.fixture
def auth() -> Auth:
    return Auth(realm=REALM, email="me@example.com", api_key="secret-key")


@pytest.fixture
def store(auth: Auth) -> SessionStore:
    return SessionStore(auth, own_user_id=OWN_USER_ID, users_by_id=USERS_BY_ID)


@pytest.fixture
def ready_store(store: SessionStore) -> SessionStore:
    """A store whose initial fetch has already completed."""

    from chatsync.runtime.signals import InitialFetchComplete

    store.dispatch(InitialFetchComplete())
    return store


@pytest.fixture
def recorder(store: SessionStore) -> SignalRecorder:
    return SignalRecorder(forward=store.dispatch)


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def instant_backoff(sleeps: list[float]) -> Callable[[], BackoffMachine]:
    """Backoff factory that records delays instead of sleeping."""

    async def _sleep(delay: float) -> None:
        sleeps.append(delay)
        await asyncio.sleep(0)

    def _factory() -> BackoffMachine:
        return BackoffMachine(BackoffConfig(), sleep=_sleep)

    return _factory


@pytest.fixture(autouse=True)
def _reset_metrics():
    sync_metrics.reset_metrics()
    yield
    sync_metrics.reset_metrics()


@pytest.fixture
def configure_sync(tmp_path, monkeypatch):
    def _apply(data: dict, *, filename: str = "chatsync.yml") -> str:
        cfg_path = tmp_path / filename
        cfg_path.write_text(yaml.safe_dump(data))
        monkeypatch.chdir(tmp_path)
        sync_configuration.reset_runtime_config_cache()
        runtime.reload()
        return str(cfg_path)

    try:
        yield _apply
    finally:
        sync_configuration.set_runtime_config_override(None)
        sync_configuration.reset_runtime_config_cache()
        monkeypatch.undo()
        runtime.reload()
