"""
Single-fire cancellation.

A StopSignal has two kinds of producers: an explicit stop request made by
the tester itself, and process termination signals (SIGINT, SIGTERM)
delivered through a SignalSource. Both fire the same signal. Once fired it
stays fired; firing again is a no-op and listeners are notified once.
"""

from __future__ import annotations

import signal
import threading
from typing import Any, Callable

import structlog

logger = structlog.get_logger()

Listener = Callable[[], None]


class StopSignal:
    """Latching, exactly-once cancellation source."""

    def __init__(self, name: str = "stop") -> None:
        self.name = name
        self._event = threading.Event()
        # Re-entrant: signal handlers run on the main thread and may
        # interrupt a subscribe() that already holds the lock.
        self._lock = threading.RLock()
        self._reason: str | None = None
        self._listeners: list[Listener] = []

    @property
    def fired(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def fire(self, reason: str = "stop requested") -> bool:
        """Fire the signal. Returns True only for the call that fired it."""
        with self._lock:
            if self._event.is_set():
                return False
            self._reason = reason
            self._event.set()
            listeners = list(self._listeners)
        for listener in listeners:
            listener()
        return True

    def wait(self, timeout: float | None = None) -> bool:
        """Block until fired or timeout; True if the signal fired."""
        return self._event.wait(timeout)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Call listener once when the signal fires (immediately if it already has).

        Returns a function that removes the listener.
        """
        with self._lock:
            already_fired = self._event.is_set()
            if not already_fired:
                self._listeners.append(listener)
        if already_fired:
            listener()

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe


class SignalSource:
    """Fans process termination signals out to attached stop signals."""

    def __init__(
        self,
        signals: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM),
        log: Any = None,
    ) -> None:
        self._signals = signals
        self._log = log or logger
        self._targets: list[StopSignal] = []
        self._previous: dict[signal.Signals, Any] = {}
        self._lock = threading.RLock()

    @property
    def installed(self) -> bool:
        return bool(self._previous)

    def install(self) -> None:
        """Install handlers; must be called from the main thread."""
        if self._previous:
            return
        for sig in self._signals:
            self._previous[sig] = signal.signal(sig, self._handle)
        self._log.debug("signal_handlers_installed", signals=[s.name for s in self._signals])

    def restore(self) -> None:
        for sig, previous in self._previous.items():
            signal.signal(sig, previous)
        self._previous.clear()

    def attach(self, stop: StopSignal) -> None:
        with self._lock:
            if stop not in self._targets:
                self._targets.append(stop)

    def detach(self, stop: StopSignal) -> None:
        with self._lock:
            if stop in self._targets:
                self._targets.remove(stop)

    def deliver(self, signum: int) -> None:
        """Fire every attached stop signal as if signum had been received."""
        name = signal.Signals(signum).name
        with self._lock:
            targets = list(self._targets)
        self._log.warning("termination_signal_received", signal=name, targets=len(targets))
        for stop in targets:
            stop.fire(f"received {name}")

    def _handle(self, signum: int, frame: Any) -> None:
        self.deliver(signum)
