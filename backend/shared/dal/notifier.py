"""Keyed change notification with cancellable subscriptions."""

from __future__ import annotations

import itertools
import threading
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable

logger = structlog.get_logger()


class Subscription:
    """Handle returned by subscribe(); cancel() stops further deliveries.

    Cancelling more than once is harmless.
    """

    def __init__(self, on_cancel: Callable[[], None]) -> None:
        self._on_cancel = on_cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._on_cancel()


class ChangeNotifier:
    """Fan out change events to the callbacks subscribed to a key.

    Callbacks run synchronously in the notifying thread, in subscription
    order. A callback that raises is logged and does not stop delivery to
    the remaining subscribers.
    """

    def __init__(self) -> None:
        self._subscribers: dict[Hashable, dict[int, Callable[..., Any]]] = {}
        self._ids = itertools.count()
        self._lock = threading.Lock()

    def subscribe(self, key: Hashable, callback: Callable[..., Any]) -> Subscription:
        with self._lock:
            sub_id = next(self._ids)
            self._subscribers.setdefault(key, {})[sub_id] = callback
        return Subscription(lambda: self._unsubscribe(key, sub_id))

    def has_subscribers(self, key: Hashable) -> bool:
        with self._lock:
            return bool(self._subscribers.get(key))

    def notify(self, key: Hashable, *args: Any) -> None:  # noqa: ANN401
        with self._lock:
            callbacks = list(self._subscribers.get(key, {}).values())
        for callback in callbacks:
            try:
                callback(*args)
            except Exception:
                logger.exception("change subscriber failed", key=key)

    def _unsubscribe(self, key: Hashable, sub_id: int) -> None:
        with self._lock:
            callbacks = self._subscribers.get(key)
            if callbacks is None:
                return
            callbacks.pop(sub_id, None)
            if not callbacks:
                del self._subscribers[key]
