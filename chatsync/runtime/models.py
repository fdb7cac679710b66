from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ApiResult(BaseModel):
    # Unknown fields are passed through untouched.
    model_config = ConfigDict(extra="allow")

    result: str = "success"
    msg: str = ""


class MessagesResponse(ApiResult):
    messages: list[dict[str, Any]] = Field(default_factory=list)
    found_newest: bool = False
    found_oldest: bool = False
    found_anchor: Optional[bool] = None
    anchor: Optional[int] = None


class RegisterResponse(ApiResult):
    queue_id: str
    last_event_id: int


class ServerSettingsResponse(ApiResult):
    zulip_version: str
    zulip_feature_level: Optional[int] = None
    realm_uri: Optional[str] = None


class UploadResponse(ApiResult):
    uri: str


__all__ = [
    "ApiResult",
    "MessagesResponse",
    "RegisterResponse",
    "ServerSettingsResponse",
    "UploadResponse",
]
