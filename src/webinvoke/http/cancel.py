# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Cooperative cancellation for a single operation.

Sends and the inter-retry delay are the only suspension points. The token lets another
thread (a signal handler, a UI) stop either one: sleeping waits on the token's event, and
in-flight sends register a callback that closes the underlying stream.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from ..errors import OperationCancelled

logger = logging.getLogger(__name__)


class CancellationToken:
    """Thread-safe cancellation token for one logical operation."""

    def __init__(self) -> None:
        self._is_cancelled = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    def cancel(self) -> None:
        """Signal cancellation and run registered callbacks once."""
        with self._lock:
            if self._is_cancelled.is_set():
                return
            self._is_cancelled.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for callback in callbacks:
            try:
                callback()
            except Exception as exc:  # noqa: BLE001
                logger.debug("Cancellation callback %r failed: %s", callback, exc)

    @property
    def cancelled(self) -> bool:
        return self._is_cancelled.is_set()

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Run `callback` when the token is cancelled; returns an unregister function.

        The callback runs immediately when the token is already cancelled.
        """
        with self._lock:
            if not self._is_cancelled.is_set():
                self._callbacks.append(callback)

                def unregister() -> None:
                    with self._lock:
                        if callback in self._callbacks:
                            self._callbacks.remove(callback)

                return unregister
        callback()
        return lambda: None

    def raise_if_cancelled(self) -> None:
        if self._is_cancelled.is_set():
            raise OperationCancelled("The operation was canceled.")

    def sleep(self, seconds: float) -> None:
        """Wait up to `seconds`; raises OperationCancelled as soon as the token fires."""
        if self._is_cancelled.wait(max(0.0, float(seconds))):
            raise OperationCancelled("The operation was canceled.")


__all__ = ["CancellationToken"]
