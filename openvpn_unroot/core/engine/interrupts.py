"""
Interrupt guard — defer termination signals to generator boundaries.

While the guard is active, SIGINT/SIGTERM/SIGHUP are only noted. The
executor calls ``raise_if_interrupted()`` between generators, so a
signal never lands inside a write or an allocation; the raised
``Interrupted`` then takes the normal rollback path.
"""

from __future__ import annotations

import logging
import signal
import threading
from types import FrameType

from openvpn_unroot.core.errors import Interrupted

logger = logging.getLogger(__name__)

GUARDED_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)


class InterruptGuard:
    """Context manager queuing termination signals until checked."""

    def __init__(self, signals: tuple[signal.Signals, ...] = GUARDED_SIGNALS):
        self._signals = signals
        self._previous: dict[int, object] = {}
        self.pending: int | None = None

    def _handler(self, signum: int, _frame: FrameType | None) -> None:
        logger.warning("Received signal %d, stopping after the current step", signum)
        if self.pending is None:
            self.pending = signum

    def __enter__(self) -> InterruptGuard:
        # signal handlers can only be installed from the main thread
        if threading.current_thread() is threading.main_thread():
            for sig in self._signals:
                self._previous[sig] = signal.signal(sig, self._handler)
        return self

    def __exit__(self, *exc_info: object) -> None:
        for sig, previous in self._previous.items():
            signal.signal(sig, previous)  # type: ignore[arg-type]
        self._previous.clear()

    def raise_if_interrupted(self) -> None:
        if self.pending is not None:
            raise Interrupted(self.pending)
