from __future__ import annotations

import argparse
import asyncio
import logging
from typing import List

from chatsync.foundation.config import UnifiedConfig
from chatsync.runtime import configuration, runtime
from chatsync.runtime import metrics as sync_metrics
from chatsync.runtime.anchor import FIRST_UNREAD_ANCHOR, NEWEST_ANCHOR, Anchor
from chatsync.runtime.api_client import Auth, ChatApiClient
from chatsync.runtime.exceptions import ApiError
from chatsync.runtime.bootstrap import BootstrapOrchestrator, BootstrapState
from chatsync.runtime.fetch_coordinator import FetchCoordinator
from chatsync.runtime.narrow import parse_narrow
from chatsync.runtime.session_state import SessionStore
from chatsync.runtime.signals import Signal, SignalRecorder

logger = logging.getLogger(__name__)


def _parse_anchor(value: str) -> Anchor:
    if value in (FIRST_UNREAD_ANCHOR, NEWEST_ANCHOR):
        return value  # type: ignore[return-value]
    try:
        return int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"anchor must be a message id, {FIRST_UNREAD_ANCHOR!r} or {NEWEST_ANCHOR!r}"
        ) from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chatsync", description="Sync messages from a chat server")
    parser.add_argument("--config", help="Path to chatsync.yml (defaults to ./chatsync.yml)")
    parser.add_argument("--realm", help="Server URL; overrides server.realm")
    parser.add_argument("--email", help="Account email; overrides server.email")
    parser.add_argument("--api-key", help="API key; overrides server.api_key")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--metrics", action="store_true", help="Print Prometheus metrics after the run")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("bootstrap", help="Register an event queue and print the resulting signals")

    fetch_p = sub.add_parser("fetch", help="Bootstrap, then fetch messages around an anchor")
    fetch_p.add_argument(
        "narrow",
        help="home | all-pm | starred | mentioned | stream:NAME | topic:STREAM/TOPIC | pm:ID,ID | search:TEXT",
    )
    fetch_p.add_argument("--anchor", type=_parse_anchor, default=FIRST_UNREAD_ANCHOR)
    return parser


def _resolve_auth(args: argparse.Namespace, cfg: UnifiedConfig) -> Auth:
    realm = args.realm or cfg.server.realm
    email = args.email or cfg.server.email
    api_key = args.api_key or cfg.server.api_key
    missing = [name for name, value in (("realm", realm), ("email", email), ("api_key", api_key)) if not value]
    if missing:
        raise SystemExit(f"missing server settings: {', '.join(missing)}")
    return Auth(realm=str(realm), email=str(email), api_key=str(api_key))


def _describe(signal: Signal) -> str:
    return f"{type(signal).__name__}: {signal!r}"


def _print_signals(recorder: SignalRecorder) -> None:
    for signal in recorder.signals:
        print(_describe(signal))


async def _run(args: argparse.Namespace, auth: Auth) -> int:
    async with ChatApiClient() as api:
        store = SessionStore(auth)
        recorder = SignalRecorder(forward=store.dispatch)
        coordinator = FetchCoordinator(api, store, recorder)
        orchestrator = BootstrapOrchestrator(api, store, recorder, coordinator)

        state = await orchestrator.run()
        if state is not BootstrapState.READY:
            _print_signals(recorder)
            return 1

        if args.cmd == "fetch":
            try:
                messages = await coordinator.fetch_messages_in_narrow(args.narrow, args.anchor)
            except (ApiError, KeyError) as exc:
                logger.error("fetch failed: %r", exc)
                _print_signals(recorder)
                return 1
            if messages is None:
                print("narrow already loaded; nothing fetched")

        _print_signals(recorder)
    return 0


def main(argv: List[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    if args.config:
        configuration.set_runtime_config_override(configuration.get_runtime_config(args.config))
    cfg = configuration.get_unified_config()
    runtime._reload_from_config(cfg)
    logger.debug("config source: %s", args.config or configuration.get_runtime_config_path() or "defaults")

    if args.cmd == "fetch":
        try:
            args.narrow = parse_narrow(args.narrow)
        except ValueError as exc:
            parser.error(str(exc))

    auth = _resolve_auth(args, cfg)
    status = asyncio.run(_run(args, auth))
    if args.metrics:
        print(sync_metrics.collect_metrics(), end="")
    return status


__all__ = ["main"]
