"""Cooperative cancellation for long-running taxonomy operations."""

from __future__ import annotations

import threading


class CancellationToken:
    """
    Flag checked between items by bulk, import and reconciliation loops.

    Cancelling never interrupts an item in flight; the loop stops before the
    next one and reports ``cancelled=True``.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def __repr__(self):
        return f"<CancellationToken cancelled={self.cancelled}>"


def is_cancelled(token: CancellationToken | None) -> bool:
    return token is not None and token.cancelled
