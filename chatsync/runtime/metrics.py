from __future__ import annotations

"""Prometheus metrics for message sync and bootstrap."""

from collections.abc import Sequence
from typing import Any, Dict, Tuple

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    generate_latest,
    REGISTRY as global_registry,
)
from prometheus_client.metrics import MetricWrapperBase

_METRIC_CACHE: Dict[Tuple[CollectorRegistry, str], MetricWrapperBase] = {}


def _get_or_create(
    cls: Any,
    name: str,
    documentation: str,
    labelnames: Sequence[str] = (),
    *,
    registry: CollectorRegistry | None = None,
) -> Any:
    """Return an existing metric or register a new one.

    Re-importing this module (as test reloaders do) must not register the
    same collector twice, so metrics are cached per registry and name.
    """

    reg = registry or global_registry
    key = (reg, name)
    metric = _METRIC_CACHE.get(key)
    if metric is None:
        metric = cls(name, documentation, list(labelnames), registry=reg)
        _METRIC_CACHE[key] = metric
    return metric


fetch_total = _get_or_create(
    Counter,
    "chatsync_fetch_total",
    "Message fetches grouped by direction and outcome",
    ["direction", "outcome"],
)

retry_total = _get_or_create(
    Counter,
    "chatsync_retry_total",
    "Backoff waits taken before retrying an operation",
    ["operation"],
)

bootstrap_total = _get_or_create(
    Counter,
    "chatsync_bootstrap_total",
    "Bootstrap runs grouped by outcome",
    ["outcome"],
)

bootstrap_state = _get_or_create(
    Gauge,
    "chatsync_bootstrap_state",
    "Current bootstrap state (0=idle, 1=fetching, 2=ready, 3=logged out)",
)


def observe_fetch(direction: str, outcome: str) -> None:
    fetch_total.labels(direction=direction, outcome=outcome).inc()


def observe_retry(operation: str) -> None:
    retry_total.labels(operation=operation).inc()


def observe_bootstrap(outcome: str) -> None:
    bootstrap_total.labels(outcome=outcome).inc()


def set_bootstrap_state(value: int) -> None:
    bootstrap_state.set(value)


def collect_metrics() -> str:
    """Return metrics in the Prometheus text exposition format."""

    return generate_latest(global_registry).decode()


def reset_metrics() -> None:
    """Reset every metric to its initial state (for tests)."""

    for metric in (fetch_total, retry_total, bootstrap_total):
        metric.clear()
    bootstrap_state.set(0)


__all__ = [
    "bootstrap_state",
    "bootstrap_total",
    "collect_metrics",
    "fetch_total",
    "observe_bootstrap",
    "observe_fetch",
    "observe_retry",
    "reset_metrics",
    "retry_total",
    "set_bootstrap_state",
]
