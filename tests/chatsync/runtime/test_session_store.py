import logging

import pytest

from chatsync.foundation.common import ServerVersion
from chatsync.runtime.narrow import HOME_NARROW, StreamNarrow
from chatsync.runtime.session_state import ScopeFetchState, SessionStateReader, SessionStore
from chatsync.runtime.signals import (
    AddToOutbox,
    InitialFetchComplete,
    InitialFetchStart,
    Logout,
    MessageFetchComplete,
    MessageFetchError,
    MessageFetchStart,
    RealmInit,
    SendOutbox,
    StartEventPolling,
)

GENERAL = StreamNarrow("general")


def _complete(ids, *, num_before=10, num_after=10, found_oldest=False, found_newest=False, narrow=GENERAL):
    return MessageFetchComplete(
        messages=[{"id": i} for i in ids],
        narrow=narrow,
        anchor=ids[0] if ids else 0,
        num_before=num_before,
        num_after=num_after,
        found_newest=found_newest,
        found_oldest=found_oldest,
        own_user_id=7,
    )


def test_store_satisfies_reader_protocol(store):
    assert isinstance(store, SessionStateReader)


def test_fresh_store_needs_initial_fetch(auth):
    store = SessionStore(auth)
    assert store.needs_initial_fetch()
    assert store.get_fetch_state(GENERAL) == ScopeFetchState()
    with pytest.raises(LookupError):
        store.get_own_user_id()


def test_fetch_start_sets_flags_by_direction(store):
    store.dispatch(MessageFetchStart(GENERAL, 50, 0))
    state = store.get_fetch_state(GENERAL)
    assert state.fetching_older and not state.fetching_newer

    store.dispatch(MessageFetchStart(GENERAL, 0, 50))
    assert store.get_fetch_state(GENERAL).fetching_newer


def test_fetch_complete_merges_messages_in_order(store):
    store.dispatch(MessageFetchStart(GENERAL, 10, 10))
    store.dispatch(_complete([30, 10, 20]))
    store.dispatch(_complete([20, 40, 5], found_oldest=True))

    assert store.message_ids(GENERAL) == [5, 10, 20, 30, 40]
    state = store.get_fetch_state(GENERAL)
    assert (state.first_message_id, state.last_message_id) == (5, 40)
    assert not state.fetching_older and not state.fetching_newer
    assert state.caught_up_older and not state.caught_up_newer
    assert store.get_message(40) == {"id": 40}
    assert store.message_ids(HOME_NARROW) == []


def test_caught_up_flags_are_sticky(store):
    store.dispatch(_complete([1], found_newest=True))
    store.dispatch(_complete([2], found_newest=False))

    assert store.get_fetch_state(GENERAL).caught_up_newer


def test_fetch_error_clears_in_flight_flags(store):
    store.dispatch(MessageFetchStart(GENERAL, 10, 10))
    store.dispatch(MessageFetchError(GENERAL, RuntimeError("boom")))

    state = store.get_fetch_state(GENERAL)
    assert not state.fetching_older and not state.fetching_newer


def test_initial_fetch_lifecycle(store):
    store.dispatch(InitialFetchStart())
    assert store.loading

    store.dispatch(InitialFetchComplete())
    assert not store.loading
    assert not store.needs_initial_fetch()


def test_realm_init_records_snapshot_and_users(auth):
    store = SessionStore(auth)
    data = {
        "queue_id": "q",
        "last_event_id": 3,
        "user_id": 99,
        "realm_users": [{"user_id": 99, "email": "new@example.com"}, {"user_id": "bad"}],
    }

    store.dispatch(RealmInit(initial_data=data, server_version=ServerVersion("4.0")))

    assert store.get_own_user_id() == 99
    assert store.get_users_by_id() == {99: "new@example.com"}
    assert store.server_version == ServerVersion("4.0")
    assert store.initial_data is data


def test_event_polling_and_outbox(store):
    store.dispatch(StartEventPolling("q:1", 17))
    store(AddToOutbox(GENERAL, "[a](/u/a)"))
    store.dispatch(SendOutbox())

    assert (store.queue_id, store.last_event_id) == ("q:1", 17)
    assert store.outbox == [AddToOutbox(GENERAL, "[a](/u/a)")]


def test_logout_resets_session(store, caplog):
    store.dispatch(InitialFetchComplete())
    store.dispatch(_complete([1, 2]))
    store.dispatch(StartEventPolling("q:1", 17))

    with caplog.at_level(logging.INFO, logger="chatsync.runtime.session_state"):
        store.dispatch(Logout())

    assert store.logged_out
    assert store.needs_initial_fetch()
    assert store.message_ids(GENERAL) == []
    assert store.queue_id is None
    assert "session.logout" in [r.getMessage() for r in caplog.records]


def test_seed_installs_boundaries(store):
    store.seed(GENERAL, ScopeFetchState(caught_up_older=True, first_message_id=3, last_message_id=9))

    state = store.get_fetch_state(GENERAL)
    assert state == ScopeFetchState(caught_up_older=True, first_message_id=3, last_message_id=9)
