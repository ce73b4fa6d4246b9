from sitegen.notifier import UPDATED, Notifier


def test_broadcast_reaches_every_subscriber():
    notifier = Notifier()
    notifier.start()
    try:
        first = notifier.subscribe()
        second = notifier.subscribe()
        notifier.broadcast()
        assert first.get(timeout=1) == UPDATED
        assert second.get(timeout=1) == UPDATED
    finally:
        notifier.stop()


def test_unregistered_subscriber_gets_nothing():
    notifier = Notifier()
    notifier.start()
    try:
        kept = notifier.subscribe()
        gone = notifier.subscribe()
        notifier.unregister(gone)
        notifier.broadcast("again")
        notifier.flush()
        assert kept.get(timeout=1) == "again"
        assert gone.empty()
        assert notifier.subscriber_count == 1
    finally:
        notifier.stop()


def test_requests_before_start_are_kept():
    notifier = Notifier()
    subscriber = notifier.subscribe()
    notifier.broadcast()
    notifier.start()
    try:
        assert subscriber.get(timeout=1) == UPDATED
    finally:
        notifier.stop()


def test_start_and_stop_are_idempotent():
    notifier = Notifier()
    notifier.stop()
    notifier.start()
    thread = notifier._thread
    notifier.start()
    assert notifier._thread is thread
    assert notifier.is_running
    notifier.stop()
    assert not notifier.is_running
    notifier.stop()
