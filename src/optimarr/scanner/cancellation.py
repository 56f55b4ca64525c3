"""Cooperative cancellation for background workers."""

from __future__ import annotations

import threading


class CancellationToken:
    """A one-way flag a worker polls between items.

    Cancellation never interrupts an item in progress; the worker finishes
    the current file and stops before pulling the next one.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation. Idempotent."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or the timeout elapses; returns the flag."""
        return self._event.wait(timeout)
