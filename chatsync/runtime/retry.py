from __future__ import annotations

import logging
from typing import Awaitable, Callable, TypeVar

from . import metrics as sync_metrics
from .backoff import BackoffMachine
from .exceptions import is_client_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def try_fetch(
    func: Callable[[], Awaitable[T]],
    *,
    backoff: BackoffMachine | None = None,
    operation: str = "call",
) -> T:
    """Call ``func`` until it succeeds.

    A client error (HTTP 4xx) means the request itself is unacceptable, so it
    is re-raised at once to be handled further up the call stack. Any other
    failure is followed by a backoff wait and another attempt, with no upper
    bound on the number of attempts. Cancelling the calling task stops the
    loop.
    """

    machine = backoff or BackoffMachine()
    while True:
        try:
            return await func()
        except Exception as exc:
            if is_client_error(exc):
                logger.warning(
                    "retry.terminal",
                    extra={"operation": operation, "attempt": machine.attempts + 1, "error": str(exc)},
                )
                raise
            delay = machine.next()
            sync_metrics.observe_retry(operation)
            logger.info(
                "retry.backoff",
                extra={
                    "operation": operation,
                    "attempt": machine.attempts,
                    "delay": delay,
                    "error": repr(exc),
                },
            )
            await machine.sleep(delay)


__all__ = ["try_fetch"]
