"""
Caller-driven cancellation for outbound requests.

A :class:`CancellationToken` is created by the caller, passed into any client
operation, and may be cancelled from another thread. The transport checks it
before sending and again once the response arrives.
"""

import threading


class RequestCancelledError(Exception):
    """Raised when a request is abandoned because its token was cancelled."""


class CancellationToken:
    """A one-shot, thread-safe cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str | None = None) -> None:
        """
        Mark the token as cancelled. Later calls are no-ops and keep the first
        reason.
        """
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        """
        :raises RequestCancelledError: If :meth:`cancel` has been called.
        """
        if self._event.is_set():
            raise RequestCancelledError(self.reason or "Request was cancelled")
