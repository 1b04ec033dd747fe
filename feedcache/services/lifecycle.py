"""Host lifecycle hooks.

A `LifecycleSource` tells the cache when the host came back to the
foreground and how long it has been since the previous foreground. The
`LifecycleObserver` turns that into a mark-all-stale when the gap is at least
the configured threshold. Sources never touch the cache directly.
"""
import signal
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Optional

from feedcache.core.exceptions.exceptions import UnknownLifecycleSourceError
from feedcache.utils.log import app_logger

ForegroundCallback = Callable[[float], None]

ACTIVE = "active"
BACKGROUND = "background"
INACTIVE = "inactive"


class LifecycleSource(ABC):
    """Emits `on_foreground_after_background(elapsed_seconds)` to one callback."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._callback: Optional[ForegroundCallback] = None
        self._last_foreground_at = clock()

    @property
    def attached(self) -> bool:
        return self._callback is not None

    def attach(self, on_foreground_after_background: ForegroundCallback) -> None:
        self._callback = on_foreground_after_background
        self._last_foreground_at = self.clock()
        self._start()

    def detach(self) -> None:
        if self._callback is None:
            return
        self._stop()
        self._callback = None

    def _foreground(self) -> None:
        now = self.clock()
        elapsed = now - self._last_foreground_at
        self._last_foreground_at = now
        if self._callback is not None:
            self._callback(elapsed)

    @abstractmethod
    def _start(self) -> None:
        ...

    @abstractmethod
    def _stop(self) -> None:
        ...


class NullLifecycleSource(LifecycleSource):
    """Headless hosts: never reports a foreground."""

    def _start(self) -> None:
        pass

    def _stop(self) -> None:
        pass


class AppStateLifecycleSource(LifecycleSource):
    """Driven by the host's app-state listener.

    The host forwards every state change to `change`. Leaving `background` or
    `inactive` for `active` counts as a foreground.
    """

    def __init__(self, clock: Callable[[], float] = time.time, initial_state: str = ACTIVE):
        super().__init__(clock)
        self.state = initial_state

    def change(self, next_state: str) -> None:
        last, self.state = self.state, next_state
        if last in (BACKGROUND, INACTIVE) and next_state == ACTIVE:
            self._foreground()

    def _start(self) -> None:
        pass

    def _stop(self) -> None:
        pass


class SignalLifecycleSource(LifecycleSource):
    """POSIX hosts: a `SIGCONT` (resumed after a stop) counts as a foreground.

    Handlers can only be installed from the main thread; attached anywhere
    else, or on platforms without `SIGCONT`, the source stays inert.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        super().__init__(clock)
        self._previous_handler = None
        self._installed = False

    def _handle(self, signum, frame) -> None:
        self._foreground()

    def _start(self) -> None:
        sigcont = getattr(signal, "SIGCONT", None)
        if sigcont is None:
            app_logger.warning("lifecycle.signal_unavailable", signal="SIGCONT")
            return
        if threading.current_thread() is not threading.main_thread():
            app_logger.warning("lifecycle.signal_not_main_thread", signal="SIGCONT")
            return
        self._previous_handler = signal.signal(sigcont, self._handle)
        self._installed = True
        app_logger.debug("lifecycle.signal_installed", signal="SIGCONT")

    def _stop(self) -> None:
        if not self._installed:
            return
        previous = self._previous_handler if self._previous_handler is not None else signal.SIG_DFL
        signal.signal(signal.SIGCONT, previous)
        self._installed = False
        self._previous_handler = None


def build_lifecycle_source(name: str, clock: Callable[[], float] = time.time) -> LifecycleSource:
    normalized = (name or "none").strip().lower()
    if normalized == "none":
        return NullLifecycleSource(clock)
    if normalized == "app_state":
        return AppStateLifecycleSource(clock)
    if normalized == "signal":
        return SignalLifecycleSource(clock)
    raise UnknownLifecycleSourceError(name)


class LifecycleObserver:
    """Marks every bucket stale when the host returns after `threshold` seconds."""

    def __init__(self, mark_all_stale: Callable[[], None], threshold: float, clock: Callable[[], float] = time.time):
        self.mark_all_stale = mark_all_stale
        self.threshold = threshold
        self.clock = clock
        self.last_foreground_at = clock()

    def on_foreground_after_background(self, elapsed: float) -> None:
        self.last_foreground_at = self.clock()
        if elapsed < self.threshold:
            app_logger.debug("lifecycle.foreground", elapsed=elapsed, marked_stale=False)
            return
        app_logger.info("lifecycle.foreground", elapsed=elapsed, marked_stale=True)
        self.mark_all_stale()

    def last_foreground_iso(self) -> str:
        return datetime.fromtimestamp(self.last_foreground_at, tz=timezone.utc).isoformat()
