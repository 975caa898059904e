"""Wall-clock limits for blocking network calls.

``requests`` timeouts apply to each socket operation, so a peer that trickles bytes can
keep a call alive far past its budget. ``call_with_deadline`` runs the call on a daemon
worker thread and stops waiting for it once the deadline passes.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Generic, Optional, TypeVar

from .errors import FetchTimeout

logger = logging.getLogger("mcp_fetch")

T = TypeVar("T")


class _PendingCall(Generic[T]):
    def __init__(self, func: Callable[[], T], on_late_result: Optional[Callable[[T], None]]) -> None:
        self._func = func
        self._on_late_result = on_late_result
        self._lock = threading.Lock()
        self._finished = threading.Event()
        self._abandoned = False
        self.value: Optional[T] = None
        self.error: Optional[Exception] = None

    def run(self) -> None:
        value: Optional[T] = None
        error: Optional[Exception] = None
        try:
            value = self._func()
        except Exception as exc:  # noqa: BLE001 - re-raised on the waiting thread
            error = exc
        with self._lock:
            if not self._abandoned:
                self.value, self.error = value, error
                self._finished.set()
                return
        if value is not None and self._on_late_result is not None:
            self._on_late_result(value)
        elif error is not None:
            logger.debug("Abandoned call failed after its deadline: %s", error)

    def wait(self, timeout: float) -> bool:
        if self._finished.wait(max(0.0, timeout)):
            return True
        with self._lock:
            if self._finished.is_set():
                return True
            self._abandoned = True
        return False


def call_with_deadline(
    func: Callable[[], T],
    deadline: float,
    url: Optional[str] = None,
    *,
    on_timeout: Optional[Callable[[], None]] = None,
    on_late_result: Optional[Callable[[T], None]] = None,
) -> T:
    """Return ``func()`` if it finishes before the monotonic ``deadline``.

    Otherwise ``on_timeout`` runs on the calling thread and ``FetchTimeout`` is raised.
    A value produced after that point is handed to ``on_late_result`` instead of being
    returned.
    """
    pending: _PendingCall[T] = _PendingCall(func, on_late_result)
    worker = threading.Thread(target=pending.run, name="mcp-fetch-io", daemon=True)
    worker.start()
    if not pending.wait(deadline - time.monotonic()):
        if on_timeout is not None:
            try:
                on_timeout()
            except Exception as exc:  # noqa: BLE001 - cleanup after giving up
                logger.debug("Cleanup after deadline failed: %s", exc)
        raise FetchTimeout("Deadline exceeded while waiting for the server", url)
    if pending.error is not None:
        raise pending.error
    return pending.value  # type: ignore[return-value]
