"""
Observation bus shared by the stateful services.

An Observable wraps a snapshot function. Subscribers receive the current
snapshot as soon as they subscribe, so a late subscriber never misses the
initial state, and every notify() delivers a fresh snapshot to each
subscriber in the order they subscribed.

Usage:
    bus = Observable(lambda: tuple(tasks))
    unsubscribe = bus.subscribe(render)   # render() called immediately
    bus.notify()                          # render() called again
    unsubscribe()
"""

import threading
from typing import Callable, Generic, List, Optional, TypeVar

from ..utils.logger import get_logger


T = TypeVar('T')

Subscriber = Callable[[T], None]


class Observable(Generic[T]):
    """
    Multi-subscriber notification primitive with replay-on-subscribe

    Snapshots must be copies: subscribers may hold on to them, and the
    owning service keeps mutating its own state.

    Replays and broadcasts are serialized on one re-entrant delivery lock, so
    a subscriber never sees an older snapshot after a newer one. Owners that
    guard their state with an RLock pass it in to keep a single lock order.
    """

    def __init__(self, snapshot: Callable[[], T], name: str = "observable",
                 lock: Optional[threading.RLock] = None):
        """
        Initialize the bus

        Args:
            snapshot: Callable returning an immutable copy of the current state
            name: Label used in log messages
            lock: Re-entrant lock held while delivering snapshots
        """
        self._snapshot = snapshot
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()
        self._delivery_lock = lock if lock is not None else threading.RLock()
        self.name = name
        self.logger = get_logger(__name__)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a subscriber and replay the current state to it

        Args:
            callback: Called with a snapshot now and on every notify()

        Returns:
            Unsubscribe handle; calling it more than once is harmless
        """
        with self._delivery_lock:
            with self._lock:
                self._subscribers.append(callback)
            self._deliver(callback, self._snapshot())

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def notify(self) -> None:
        """Broadcast a fresh snapshot to every current subscriber, in order"""
        with self._delivery_lock:
            with self._lock:
                subscribers = list(self._subscribers)

            for callback in subscribers:
                self._deliver(callback, self._snapshot())

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def _deliver(self, callback: Subscriber, snapshot: T) -> None:
        # A broken subscriber must not starve the rest or crash the owner
        try:
            callback(snapshot)
        except Exception as e:
            self.logger.error(f"Subscriber of {self.name} raised: {e}", exc_info=True)
