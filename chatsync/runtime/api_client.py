from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Type, TypeVar

import httpx
from pydantic import ValidationError

from . import runtime
from .anchor import Anchor
from .exceptions import ApiError, ClientApiError, NetworkError, ServerApiError
from .models import (
    ApiResult,
    MessagesResponse,
    RegisterResponse,
    ServerSettingsResponse,
    UploadResponse,
)
from .narrow import ApiNarrow

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

ModelT = TypeVar("ModelT", bound=ApiResult)


@dataclass(frozen=True)
class Auth:
    """Credentials for one account on one server."""

    realm: str
    email: str
    api_key: str

    def __repr__(self) -> str:
        return f"Auth(realm={self.realm!r}, email={self.email!r}, api_key='***')"


class ChatApiClient:
    """HTTP client for the chat server REST API.

    Every method returns the decoded JSON payload on success and raises an
    :class:`~chatsync.runtime.exceptions.ApiError` subclass otherwise.
    """

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or httpx.AsyncClient()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ChatApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    async def get_messages(
        self,
        auth: Auth,
        *,
        narrow: ApiNarrow,
        anchor: Anchor,
        num_before: int,
        num_after: int,
        use_first_unread_anchor: bool = False,
    ) -> dict[str, Any]:
        """Fetch a page of messages around ``anchor``."""

        params: dict[str, Any] = {
            "narrow": json.dumps(narrow),
            "anchor": str(anchor),
            "num_before": num_before,
            "num_after": num_after,
            "apply_markdown": "true",
        }
        if use_first_unread_anchor:
            params["use_first_unread_anchor"] = "true"
        payload = await self._request_json("GET", auth.realm, "/messages", auth=auth, params=params)
        return self._validated(MessagesResponse, "/messages", payload)

    async def register_queue(
        self,
        auth: Auth,
        *,
        fetch_event_types: list[str],
        apply_markdown: bool = True,
        include_subscribers: bool = False,
        client_gravatar: bool = True,
        client_capabilities: Mapping[str, bool] | None = None,
    ) -> dict[str, Any]:
        """Register an event queue and return the initial data snapshot."""

        data = {
            "fetch_event_types": json.dumps(list(fetch_event_types)),
            "apply_markdown": json.dumps(apply_markdown),
            "include_subscribers": json.dumps(include_subscribers),
            "client_gravatar": json.dumps(client_gravatar),
            "client_capabilities": json.dumps(dict(client_capabilities or {})),
        }
        payload = await self._request_json("POST", auth.realm, "/register", auth=auth, data=data)
        return self._validated(RegisterResponse, "/register", payload)

    async def get_server_settings(self, realm: str) -> dict[str, Any]:
        """Fetch unauthenticated server metadata (version, auth methods, ...)."""

        payload = await self._request_json("GET", realm, "/server_settings")
        return self._validated(ServerSettingsResponse, "/server_settings", payload)

    async def upload_file(self, auth: Auth, path: str | Path, name: str) -> dict[str, Any]:
        """Upload a local file; the response carries the server-side ``uri``."""

        with open(path, "rb") as fh:
            files = {"file": (name, fh)}
            payload = await self._request_json(
                "POST", auth.realm, "/user_uploads", auth=auth, files=files
            )
        return self._validated(UploadResponse, "/user_uploads", payload)

    # ------------------------------------------------------------------
    def _build_url(self, realm: str, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return f"{realm.rstrip('/')}{API_PREFIX}{path}"

    async def _request_json(
        self,
        method: str,
        realm: str,
        path: str,
        *,
        auth: Auth | None = None,
        params: Optional[dict[str, Any]] = None,
        data: Optional[dict[str, Any]] = None,
        files: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        url = self._build_url(realm, path)
        request_kwargs: dict[str, Any] = {"timeout": runtime.HTTP_TIMEOUT_SECONDS}
        if auth is not None:
            request_kwargs["auth"] = httpx.BasicAuth(auth.email, auth.api_key)
        if params is not None:
            request_kwargs["params"] = params
        if data is not None:
            request_kwargs["data"] = data
        if files is not None:
            request_kwargs["files"] = files
        try:
            resp = await self._client.request(method, url, **request_kwargs)
        except httpx.TransportError as exc:
            raise NetworkError(f"{method} {path} failed: {exc}") from exc
        return self._parse_response(path, resp)

    def _parse_response(self, path: str, resp: httpx.Response) -> dict[str, Any]:
        payload = self._safe_json(resp)
        status = resp.status_code
        if status >= 400:
            raise self._error_for(status, payload, path)
        if not isinstance(payload, dict):
            raise ServerApiError(f"{path}: response is not a JSON object", status_code=status)
        if payload.get("result", "success") != "success":
            raise ServerApiError(
                str(payload.get("msg") or f"{path}: unsuccessful result"),
                status_code=status,
                code=payload.get("code"),
                data=payload,
            )
        return payload

    def _error_for(self, status: int, payload: Any, path: str) -> ApiError:
        details = payload if isinstance(payload, dict) else {}
        message = str(details.get("msg") or f"{path}: HTTP {status}")
        code = details.get("code")
        cls = ClientApiError if 400 <= status < 500 else ServerApiError
        logger.debug("api.error", extra={"path": path, "status": status, "code": code})
        return cls(message, status_code=status, code=code, data=details)

    def _validated(self, model: Type[ModelT], path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            return model.model_validate(payload).model_dump()
        except ValidationError as exc:
            raise ServerApiError(f"{path}: invalid response: {exc}", data=payload) from exc

    def _safe_json(self, resp: httpx.Response) -> Any | None:
        try:
            return resp.json()
        except ValueError:
            return None


__all__ = ["API_PREFIX", "Auth", "ChatApiClient"]
