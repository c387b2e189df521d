"""Bounded retry policy for session expiry.

Only ``SessionExpiredError`` is retried, and only ``max_retries`` times
(default 1).  Everything else propagates on the first failure.  Re-login is
the operation's own concern: the usual operation is "ensure session, then
call", so a retry after invalidation logs in again.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, TypeVar

from src.gateway.errors import SessionExpiredError

logger = logging.getLogger("heartline.gateway.retry")

T = TypeVar("T")


async def retry_on_expiry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 1,
    label: str = "operation",
) -> T:
    """Run ``operation``, retrying it after a SessionExpiredError.

    Args:
        operation:   Zero-argument coroutine factory; called once per attempt.
        max_retries: Extra attempts allowed after the first.
        label:       Name used in log lines.

    Returns:
        The operation's result.

    Raises:
        SessionExpiredError: If the last attempt also reports expiry.
    """
    for attempt in range(max_retries + 1):
        try:
            result = await operation()
        except SessionExpiredError as exc:
            if attempt == max_retries:
                logger.error(
                    "%s: session still expired after %d retr%s: %s",
                    label, max_retries, "y" if max_retries == 1 else "ies", exc,
                )
                raise
            logger.warning(
                "%s: session expired, re-authenticating (retry %d/%d)",
                label, attempt + 1, max_retries,
            )
            continue
        if attempt > 0:
            logger.info("%s succeeded after re-authentication", label)
        return result
    raise AssertionError("unreachable")

