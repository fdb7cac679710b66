from __future__ import annotations

"""Fetching message history from the server as the user navigates.

The event queue keeps almost all session data current on its own. Message
history is the exception: it has to be fetched page by page as the user
opens a narrow or scrolls towards either end of it. Every fetch reports its
progress through signals so the session store can track what is in flight
and how far each narrow has been loaded.
"""

import logging
from pathlib import Path
from typing import Any, Protocol

from . import metrics as sync_metrics
from . import runtime
from .anchor import FIRST_UNREAD_ANCHOR, NEWEST_ANCHOR, Anchor
from .api_client import Auth
from .fetch_window import FetchWindow, centered_window, newer_window, older_window
from .narrow import ALL_PRIVATE_NARROW, ApiNarrow, Narrow, api_narrow_of_narrow
from .session_state import SessionStateReader
from .signals import (
    AddToOutbox,
    Dispatch,
    Message,
    MessageFetchComplete,
    MessageFetchError,
    MessageFetchStart,
)

logger = logging.getLogger(__name__)


class MessagesApi(Protocol):
    async def get_messages(
        self,
        auth: Auth,
        *,
        narrow: ApiNarrow,
        anchor: Anchor,
        num_before: int,
        num_after: int,
        use_first_unread_anchor: bool = False,
    ) -> dict[str, Any]: ...

    async def upload_file(self, auth: Auth, path: str | Path, name: str) -> dict[str, Any]: ...


class FetchCoordinator:
    """Issue paginated message fetches for narrows, at most one per direction."""

    def __init__(
        self,
        api: MessagesApi,
        state: SessionStateReader,
        dispatch: Dispatch,
        *,
        messages_per_request: int | None = None,
        legacy_private_messages: int | None = None,
    ) -> None:
        self._api = api
        self._state = state
        self._dispatch = dispatch
        self._messages_per_request = messages_per_request
        self._legacy_private_messages = legacy_private_messages

    @property
    def messages_per_request(self) -> int:
        if self._messages_per_request is not None:
            return self._messages_per_request
        return runtime.MESSAGES_PER_REQUEST

    @property
    def legacy_private_messages(self) -> int:
        if self._legacy_private_messages is not None:
            return self._legacy_private_messages
        return runtime.LEGACY_PRIVATE_MESSAGES

    # --------------------------------------------------------------
    async def fetch_messages(
        self,
        narrow: Narrow,
        window: FetchWindow,
        *,
        direction: str = "around",
    ) -> list[Message]:
        """Fetch one page and report it, keeping the session store current.

        Returns the messages, or raises on a failed request or any failure
        to process the response; either way the store is told. Never
        retries.
        """

        # Dispatched before the first suspension point so the in-flight flag
        # is already set when control returns to the event loop.
        self._dispatch(MessageFetchStart(narrow, window.num_before, window.num_after))
        log_extra = {
            "narrow": repr(narrow),
            "anchor": window.anchor,
            "num_before": window.num_before,
            "num_after": window.num_after,
        }
        logger.info("fetch.start", extra=log_extra)
        try:
            response = await self._api.get_messages(
                self._state.get_auth(),
                narrow=api_narrow_of_narrow(narrow, self._state.get_users_by_id()),
                anchor=window.anchor,
                num_before=window.num_before,
                num_after=window.num_after,
                use_first_unread_anchor=window.anchor == FIRST_UNREAD_ANCHOR,
            )
            messages = list(response.get("messages", []))
            self._dispatch(
                MessageFetchComplete(
                    messages=messages,
                    narrow=narrow,
                    anchor=window.anchor,
                    num_before=window.num_before,
                    num_after=window.num_after,
                    found_newest=bool(response.get("found_newest", False)),
                    found_oldest=bool(response.get("found_oldest", False)),
                    own_user_id=self._state.get_own_user_id(),
                )
            )
        except Exception as exc:
            self._dispatch(MessageFetchError(narrow=narrow, error=exc))
            sync_metrics.observe_fetch(direction, "error")
            logger.warning("fetch.error", extra={**log_extra, "error": repr(exc)})
            raise
        sync_metrics.observe_fetch(direction, "complete")
        logger.info("fetch.complete", extra={**log_extra, "count": len(messages)})
        return messages

    async def fetch_older(self, narrow: Narrow) -> list[Message] | None:
        """Fetch the page before the oldest known message, if one is due.

        Returns ``None`` without doing anything while the initial fetch is
        pending, while an older fetch is in flight, once the narrow is caught
        up in that direction, or when no message of the narrow is known yet.
        """

        scope = self._state.get_fetch_state(narrow)
        if (
            self._state.needs_initial_fetch()
            or scope.fetching_older
            or scope.caught_up_older
            or scope.first_message_id is None
        ):
            logger.debug("fetch.skipped", extra={"narrow": repr(narrow), "direction": "older"})
            return None
        window = older_window(scope.first_message_id, self.messages_per_request)
        return await self.fetch_messages(narrow, window, direction="older")

    async def fetch_newer(self, narrow: Narrow) -> list[Message] | None:
        """Mirror image of :meth:`fetch_older` at the newest known message."""

        scope = self._state.get_fetch_state(narrow)
        if (
            self._state.needs_initial_fetch()
            or scope.fetching_newer
            or scope.caught_up_newer
            or scope.last_message_id is None
        ):
            logger.debug("fetch.skipped", extra={"narrow": repr(narrow), "direction": "newer"})
            return None
        window = newer_window(scope.last_message_id, self.messages_per_request)
        return await self.fetch_messages(narrow, window, direction="newer")

    def is_fetch_needed_at_anchor(self, narrow: Narrow, anchor: Anchor) -> bool:
        # Cautious for now: anything short of holding the whole narrow
        # counts as needing a fetch, wherever the anchor is.
        scope = self._state.get_fetch_state(narrow)
        return not (scope.caught_up_older and scope.caught_up_newer)

    async def fetch_messages_in_narrow(
        self,
        narrow: Narrow,
        anchor: Anchor = FIRST_UNREAD_ANCHOR,
    ) -> list[Message] | None:
        """Fetch a page centred on ``anchor``, as when a narrow is opened.

        Returns ``None`` when the narrow is already loaded end to end.
        """

        if not self.is_fetch_needed_at_anchor(narrow, anchor):
            logger.debug("fetch.skipped", extra={"narrow": repr(narrow), "direction": "around"})
            return None
        return await self.fetch_messages(narrow, centered_window(self.messages_per_request, anchor))

    async def fetch_private_messages(self) -> list[Message]:
        """Fetch the most recent private messages in one request.

        Only servers without recent-conversation data in ``/register`` need
        this; there it lets the private conversations list show something
        before the user opens any conversation.
        """

        count = self.legacy_private_messages
        response = await self._api.get_messages(
            self._state.get_auth(),
            narrow=api_narrow_of_narrow(ALL_PRIVATE_NARROW, self._state.get_users_by_id()),
            anchor=NEWEST_ANCHOR,
            num_before=count,
            num_after=0,
        )
        messages = list(response.get("messages", []))
        self._dispatch(
            MessageFetchComplete(
                messages=messages,
                narrow=ALL_PRIVATE_NARROW,
                anchor=NEWEST_ANCHOR,
                num_before=count,
                num_after=0,
                found_newest=bool(response.get("found_newest", False)),
                found_oldest=bool(response.get("found_oldest", False)),
                own_user_id=self._state.get_own_user_id(),
            )
        )
        sync_metrics.observe_fetch("legacy", "complete")
        return messages

    async def upload_file(self, narrow: Narrow, path: str | Path, name: str) -> str:
        """Upload ``path`` and queue a message linking to it in ``narrow``."""

        response = await self._api.upload_file(self._state.get_auth(), path, name)
        content = f"[{name}]({response['uri']})"
        self._dispatch(AddToOutbox(narrow=narrow, content=content))
        return content


__all__ = ["FetchCoordinator", "MessagesApi"]
