from threading import Thread

from livegame.services.change_bus import InProcessChangeBus


def test_publish_calls_listeners_in_registration_order():
    bus = InProcessChangeBus()
    calls = []
    bus.subscribe(lambda: calls.append("a"))
    bus.subscribe(lambda: calls.append("b"))
    bus.subscribe(lambda: calls.append("c"))

    assert bus.publish() == 3
    assert calls == ["a", "b", "c"]


def test_failing_listener_does_not_block_others(caplog):
    bus = InProcessChangeBus()
    calls = []

    def broken():
        raise RuntimeError("listener down")

    bus.subscribe(lambda: calls.append(1))
    bus.subscribe(broken)
    bus.subscribe(lambda: calls.append(3))

    assert bus.publish() == 3
    assert calls == [1, 3]
    assert "Change listener failed" in caplog.text


def test_unsubscribe_is_idempotent_and_targets_one_registration():
    bus = InProcessChangeBus()
    calls = []

    def listener():
        calls.append(1)

    first = bus.subscribe(listener)
    bus.subscribe(listener)
    assert bus.listener_count == 2

    first()
    first()

    assert bus.listener_count == 1
    bus.publish()
    assert calls == [1]


def test_late_subscriber_does_not_see_past_publish():
    bus = InProcessChangeBus()
    bus.publish()
    calls = []
    bus.subscribe(lambda: calls.append(1))

    assert calls == []


def test_unsubscribe_during_publish_is_safe():
    bus = InProcessChangeBus()
    calls = []
    handles = []

    def self_removing():
        calls.append("self")
        handles[0]()

    handles.append(bus.subscribe(self_removing))
    bus.subscribe(lambda: calls.append("other"))

    bus.publish()
    bus.publish()

    assert calls == ["self", "other", "other"]


def test_concurrent_subscribe_and_publish():
    bus = InProcessChangeBus()
    handles = []

    def churn():
        for _ in range(200):
            handles.append(bus.subscribe(lambda: None))
            bus.publish()

    threads = [Thread(target=churn) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert bus.listener_count == 800
    for handle in handles:
        handle()
    assert bus.listener_count == 0
