"""Cooperative cancellation shared by the artifact tasks of one run.

The first fatal error cancels the token; every other task checks it at its
next suspension point (before a request, between streamed chunks, before an
extraction) and unwinds, so partial downloads are cleaned up instead of being
abandoned by an abrupt process exit.
"""

from __future__ import annotations

import threading

from vendor_core.exceptions import CancelledError


class CancellationToken:
    """Thread-safe cancellation token for cooperative task cancellation."""

    def __init__(self) -> None:
        self._is_cancelled = threading.Event()
        self._reason: str | None = None
        self._lock = threading.Lock()

    def cancel(self, reason: str | None = None) -> None:
        """Signal that cancellation has been requested; the first reason wins."""
        with self._lock:
            if not self._is_cancelled.is_set():
                self._reason = reason
                self._is_cancelled.set()

    def is_cancelled(self) -> bool:
        return self._is_cancelled.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; return the cancelled state."""
        return self._is_cancelled.wait(timeout)

    @property
    def reason(self) -> str | None:
        return self._reason

    def raise_if_cancelled(self, what: str) -> None:
        """Raise :class:`CancelledError` if the run has been cancelled."""
        if self._is_cancelled.is_set():
            raise CancelledError(
                f"{what}: cancelled ({self._reason or 'run aborted'})",
                context={"reason": self._reason},
            )
