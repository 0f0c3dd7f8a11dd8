"""Retry of transient request failures for resolvers, store clients and downloads.

Backoff waits go through the run's :class:`CancellationToken` when one is
given, so a task that is backing off unwinds as soon as a sibling fails.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

import requests

if TYPE_CHECKING:
    from vendor_core.cancellation import CancellationToken

T = TypeVar("T")

logger = logging.getLogger(__name__)

TRANSIENT_TRANSPORT_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    requests.exceptions.ChunkedEncodingError,
)


@dataclass(frozen=True)
class RetryConfig:
    """Attempt budget and exponential backoff, from ``--retry-max``/``--retry-backoff``."""

    max_attempts: int = 3
    backoff_base: float = 2.0
    backoff_max: float = 60.0

    @property
    def attempts(self) -> int:
        return max(1, self.max_attempts)

    def delay(self, failed_attempts: int) -> float:
        return min(self.backoff_base ** (failed_attempts - 1), self.backoff_max)


def is_transient(exc: BaseException, *, rate_limit_403: bool = False) -> bool:
    """5xx, 429, dropped connections and timeouts; 403 only for rate-limited APIs."""
    if isinstance(exc, requests.exceptions.HTTPError):
        status = exc.response.status_code if exc.response is not None else None
        if status is None:
            return False
        return status >= 500 or status == 429 or (rate_limit_403 and status == 403)
    return isinstance(exc, TRANSIENT_TRANSPORT_ERRORS)


def with_retries(
    fn: Callable[[], T],
    retry: RetryConfig,
    *,
    cancel: CancellationToken | None = None,
    what: str = "request",
    rate_limit_403: bool = False,
) -> T:
    """Call ``fn`` until it succeeds, fails permanently or the budget runs out.

    Only ``requests`` errors are considered for retry; anything else propagates
    on the first attempt. Raises :class:`~vendor_core.exceptions.CancelledError`
    if ``cancel`` fires before or during a backoff wait.
    """
    for attempt in range(1, retry.attempts + 1):
        if cancel is not None:
            cancel.raise_if_cancelled(what)
        try:
            return fn()
        except requests.exceptions.RequestException as exc:
            if attempt == retry.attempts or not is_transient(exc, rate_limit_403=rate_limit_403):
                raise
            delay = retry.delay(attempt)
            logger.debug(
                "%s failed (%s); attempt %d/%d, retrying in %.1fs",
                what,
                exc,
                attempt,
                retry.attempts,
                delay,
            )
            if cancel is None:
                time.sleep(delay)
            elif cancel.wait(delay):
                cancel.raise_if_cancelled(what)
    raise RuntimeError("unreachable")
