"""Test the observation bus"""

import threading

from melodix.core.observable import Observable


class TestObservable:
    """Test subscription and broadcast"""

    def test_subscribe_replays_current_state(self):
        """A new subscriber immediately gets the current snapshot"""
        state = [1, 2]
        bus = Observable(lambda: tuple(state))
        received = []

        bus.subscribe(received.append)

        assert received == [(1, 2)]

    def test_notify_in_subscription_order(self):
        bus = Observable(lambda: "snapshot")
        calls = []

        bus.subscribe(lambda s: calls.append("first"))
        bus.subscribe(lambda s: calls.append("second"))
        calls.clear()
        bus.notify()

        assert calls == ["first", "second"]

    def test_each_subscriber_gets_fresh_snapshot(self):
        """Mutating one delivered snapshot does not affect the next subscriber"""
        state = {'value': 1}
        bus = Observable(lambda: dict(state))
        received = []

        def mutate(snapshot):
            snapshot['value'] = 99
            received.append(snapshot)

        bus.subscribe(mutate)
        bus.subscribe(received.append)
        received.clear()
        bus.notify()

        assert received[1] == {'value': 1}

    def test_unsubscribe_is_idempotent(self):
        bus = Observable(lambda: None)
        received = []

        unsubscribe = bus.subscribe(received.append)
        unsubscribe()
        unsubscribe()
        bus.notify()

        assert received == [None]
        assert bus.subscriber_count == 0

    def test_failing_subscriber_is_isolated(self):
        """A subscriber that raises does not stop the broadcast"""
        bus = Observable(lambda: "x")
        received = []

        def broken(snapshot):
            raise RuntimeError("render failed")

        bus.subscribe(broken)
        bus.subscribe(received.append)
        bus.notify()

        assert received == ["x", "x"]

    def test_unsubscribe_during_notify(self):
        """Subscribers removed mid-broadcast do not break iteration"""
        bus = Observable(lambda: 0)
        calls = []
        handles = {}

        def first(snapshot):
            calls.append("first")
            handles['second']()

        bus.subscribe(first)
        handles['second'] = bus.subscribe(lambda s: calls.append("second"))
        calls.clear()
        bus.notify()
        bus.notify()

        assert calls == ["first", "second", "first"]

    def test_concurrent_subscribe(self):
        bus = Observable(lambda: None)

        threads = [threading.Thread(target=bus.subscribe, args=(lambda s: None,)) for _ in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert bus.subscriber_count == 20

    def test_notify_waits_for_replay(self):
        """A broadcast from another thread is delivered after the pending replay"""
        state = {'value': 1}
        bus = Observable(lambda: state['value'])
        seen = []
        replaying = threading.Event()
        release = threading.Event()

        def slow(snapshot):
            seen.append(snapshot)
            if len(seen) == 1:
                replaying.set()
                release.wait(2)

        subscriber = threading.Thread(target=bus.subscribe, args=(slow,))
        subscriber.start()
        assert replaying.wait(2)

        state['value'] = 2
        notifier = threading.Thread(target=bus.notify)
        notifier.start()
        notifier.join(0.1)
        assert seen == [1]

        release.set()
        subscriber.join()
        notifier.join()
        assert seen == [1, 2]

    def test_shared_lock_is_used_for_delivery(self):
        lock = threading.RLock()
        held = []
        bus = Observable(lambda: None, lock=lock)

        def check(snapshot):
            acquired = []
            other = threading.Thread(target=lambda: acquired.append(lock.acquire(blocking=False)))
            other.start()
            other.join()
            held.append(acquired == [False])

        bus.subscribe(check)
        bus.notify()

        assert held == [True, True]
