from typing import Callable, Dict, Optional

from feedcache.schemas.feed import BucketSnapshot
from feedcache.utils.log import app_logger

Listener = Callable[[Optional[BucketSnapshot]], None]


class Notifier:
    """Per-bucket pub/sub hub.

    Behavior:
    - Listeners are kept per bucket key in subscription order; subscribing the
      same callable twice keeps a single entry.
    - `subscribe` replays the current snapshot (or `None`) to the new listener
      before returning.
    - `emit` iterates a copy of the listener set, so listeners may subscribe or
      unsubscribe while being notified. A listener that raises is logged and
      skipped; the remaining listeners still run.
    """

    def __init__(self):
        self._listeners: Dict[str, Dict[Listener, None]] = {}

    def subscribe(self, key: str, listener: Listener, current: Optional[BucketSnapshot]) -> Callable[[], None]:
        listeners = self._listeners.setdefault(key, {})
        listeners[listener] = None
        self._call(key, listener, current)

        def unsubscribe() -> None:
            registered = self._listeners.get(key)
            if registered is None:
                return
            registered.pop(listener, None)
            if not registered:
                self._listeners.pop(key, None)

        return unsubscribe

    def has_listeners(self, key: str) -> bool:
        return bool(self._listeners.get(key))

    def listener_count(self, key: Optional[str] = None) -> int:
        if key is not None:
            return len(self._listeners.get(key, {}))
        return sum(len(v) for v in self._listeners.values())

    def emit(self, key: str, snapshot: Optional[BucketSnapshot]) -> None:
        listeners = self._listeners.get(key)
        if not listeners:
            return
        for listener in list(listeners):
            self._call(key, listener, snapshot)

    def drop(self, key: str) -> None:
        self._listeners.pop(key, None)

    def clear(self) -> None:
        self._listeners.clear()

    def _call(self, key: str, listener: Listener, snapshot: Optional[BucketSnapshot]) -> None:
        try:
            listener(snapshot)
        except Exception as e:
            app_logger.error("feed_cache.listener_error", key=key, exc_type=type(e).__name__, error=str(e))
