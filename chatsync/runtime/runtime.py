"""Shared runtime flags sourced from configuration."""

from __future__ import annotations

from typing import Any

from . import configuration

TEST_MODE: bool = False
HTTP_TIMEOUT_SECONDS: float = 10.0
MESSAGES_PER_REQUEST: int = 50
LEGACY_PRIVATE_MESSAGES: int = 100


def _reload_from_config(cfg: Any | None = None) -> None:
    global TEST_MODE, HTTP_TIMEOUT_SECONDS, MESSAGES_PER_REQUEST, LEGACY_PRIVATE_MESSAGES

    unified = cfg or configuration.get_unified_config()
    runtime_cfg = unified.runtime

    TEST_MODE = bool(unified.test.test_mode)
    if TEST_MODE:
        HTTP_TIMEOUT_SECONDS = float(runtime_cfg.http_timeout_seconds_test)
    else:
        HTTP_TIMEOUT_SECONDS = float(runtime_cfg.http_timeout_seconds)
    MESSAGES_PER_REQUEST = int(unified.fetch.messages_per_request)
    LEGACY_PRIVATE_MESSAGES = int(unified.fetch.legacy_private_messages)


def reload() -> None:
    """Reload runtime settings from the unified configuration."""

    cfg = configuration.reload()
    _reload_from_config(cfg)


_reload_from_config()


__all__ = [
    "HTTP_TIMEOUT_SECONDS",
    "LEGACY_PRIVATE_MESSAGES",
    "MESSAGES_PER_REQUEST",
    "TEST_MODE",
    "reload",
]
