from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, FrozenSet, Mapping

import yaml  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)


_SERVER_ALIASES: dict[str, str] = {
    "realm_url": "realm",
    "site": "realm",
    "key": "api_key",
}

# Event types requested from ``/register`` at startup. Types the server does
# not know are ignored by it.
DEFAULT_SERVER_DATA_ON_STARTUP: tuple[str, ...] = (
    "alert_words",
    "message",
    "muted_topics",
    "presence",
    "realm",
    "realm_emoji",
    "realm_filters",
    "realm_user",
    "realm_user_groups",
    "recent_private_conversations",
    "stream",
    "subscription",
    "update_display_settings",
    "update_global_notifications",
    "update_message_flags",
    "user_status",
)


@dataclass
class ServerConfig:
    """Account the client talks to."""

    realm: str | None = None
    email: str | None = None
    api_key: str | None = None


@dataclass
class FetchConfig:
    """Message pagination settings."""

    messages_per_request: int = 50
    legacy_private_messages: int = 100
    server_data_on_startup: list[str] = field(
        default_factory=lambda: list(DEFAULT_SERVER_DATA_ON_STARTUP)
    )


@dataclass
class BackoffConfig:
    """Delay schedule used when retrying startup-critical calls."""

    first_delay_seconds: float = 0.1
    ceiling_seconds: float = 10.0
    base: float = 2.0
    jitter_ratio: float = 0.5


@dataclass
class RuntimeConfig:
    """Transport tuning knobs."""

    http_timeout_seconds: float = 10.0
    http_timeout_seconds_test: float = 1.5


@dataclass
class TestConfig:
    """Runtime toggles for integration tests and deterministic runs."""

    test_mode: bool = False


CONFIG_SECTION_NAMES: tuple[str, ...] = (
    "server",
    "fetch",
    "backoff",
    "runtime",
    "test",
)


@dataclass
class UnifiedConfig:
    """Configuration aggregating account, sync and runtime settings."""

    server: ServerConfig = field(default_factory=ServerConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    backoff: BackoffConfig = field(default_factory=BackoffConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    test: TestConfig = field(default_factory=TestConfig)
    present_sections: FrozenSet[str] = field(default_factory=frozenset)


def find_config_file(cwd: Path | None = None) -> str | None:
    """Return the first discoverable configuration file in ``cwd``."""

    base = Path.cwd() if cwd is None else cwd

    for name in ("chatsync.yml", "chatsync.yaml"):
        candidate = base / name
        if candidate.is_file():
            return str(candidate)
    return None


def _read_config_mapping(path: str) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            try:
                data = yaml.safe_load(fh) or {}
            except yaml.YAMLError as exc:
                logger.error("Failed to parse configuration file %s: %s", path, exc)
                raise ValueError(f"Failed to parse configuration file {path}") from exc
    except (FileNotFoundError, OSError) as exc:
        logger.error("Unable to open configuration file %s: %s", path, exc)
        raise

    if not isinstance(data, dict):
        raise TypeError("Unified config must be a mapping")
    return data


def _extract_sections(data: Mapping[str, Any]) -> tuple[dict[str, dict[str, Any]], FrozenSet[str]]:
    present_sections: FrozenSet[str] = frozenset(
        section
        for section in CONFIG_SECTION_NAMES
        if section in data and isinstance(data.get(section), dict)
    )

    sections: dict[str, dict[str, Any]] = {}
    for section_name in CONFIG_SECTION_NAMES:
        raw_section = data.get(section_name, {})
        if raw_section is None:
            raw_section = {}
        if not isinstance(raw_section, dict):
            raise TypeError(f"{section_name} section must be a mapping")
        sections[section_name] = dict(raw_section)
    return sections, present_sections


def _apply_aliases(section: Mapping[str, Any], aliases: Mapping[str, str], *, logger_prefix: str) -> dict[str, Any]:
    normalized = dict(section)
    for alias, canonical in aliases.items():
        if canonical in normalized:
            continue
        if alias in normalized:
            logger.warning(
                "%s: key '%s' is deprecated; use '%s' instead",
                logger_prefix,
                alias,
                canonical,
            )
            normalized[canonical] = normalized.pop(alias)
    return normalized


def _validate_fetch(cfg: FetchConfig) -> None:
    if cfg.messages_per_request < 2:
        raise ValueError("fetch.messages_per_request must be at least 2")
    if cfg.legacy_private_messages < 1:
        raise ValueError("fetch.legacy_private_messages must be positive")


def _validate_backoff(cfg: BackoffConfig) -> None:
    if cfg.first_delay_seconds < 0 or cfg.ceiling_seconds < cfg.first_delay_seconds:
        raise ValueError("backoff delays must satisfy 0 <= first_delay_seconds <= ceiling_seconds")
    if cfg.base < 1:
        raise ValueError("backoff.base must be >= 1")
    if not 0 <= cfg.jitter_ratio < 1:
        raise ValueError("backoff.jitter_ratio must be within [0, 1)")


def load_config(path: str) -> UnifiedConfig:
    """Parse YAML/JSON and populate :class:`UnifiedConfig`."""
    data = _read_config_mapping(path)
    sections, present_sections = _extract_sections(data)

    server_data = _apply_aliases(sections["server"], _SERVER_ALIASES, logger_prefix="server")

    server_cfg = ServerConfig(**server_data)
    fetch_cfg = FetchConfig(**sections["fetch"])
    backoff_cfg = BackoffConfig(**sections["backoff"])
    runtime_cfg = RuntimeConfig(**sections["runtime"])
    test_cfg = TestConfig(**sections["test"])

    _validate_fetch(fetch_cfg)
    _validate_backoff(backoff_cfg)

    return UnifiedConfig(
        server=server_cfg,
        fetch=fetch_cfg,
        backoff=backoff_cfg,
        runtime=runtime_cfg,
        test=test_cfg,
        present_sections=present_sections,
    )


__all__ = [
    "BackoffConfig",
    "CONFIG_SECTION_NAMES",
    "DEFAULT_SERVER_DATA_ON_STARTUP",
    "FetchConfig",
    "RuntimeConfig",
    "ServerConfig",
    "TestConfig",
    "UnifiedConfig",
    "find_config_file",
    "load_config",
]
