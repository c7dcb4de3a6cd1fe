"""Flattening tests: a pending promise adopting the outcome of another."""

import threading

import pytest

from promises import InvalidStateError, Observer, Promise, defer


def test_adopter_settles_with_source_value():
    source = defer()
    adopter = defer()
    source.become(adopter)
    source.fulfill("v")
    assert adopter.value == "v"


def test_adopter_settles_with_source_rejection():
    source = defer()
    adopter = defer()
    source.become(adopter)
    source.reject("r")
    assert adopter.reason == "r"


def test_become_on_settled_source_settles_immediately():
    source = Promise.resolved(4)
    adopter = defer()
    source.become(adopter)
    assert adopter.value == 4


def test_waiting_observers_move_to_source():
    source = defer()
    adopter = defer()
    seen = []
    handle = adopter.subscribe(Observer(on_next=seen.append))
    source.become(adopter)
    assert handle in source._observers
    source.fulfill("moved")
    assert seen == ["moved"]


def test_moved_observers_fire_once():
    source = defer()
    adopter = defer()
    seen = []
    adopter.then(seen.append)
    source.become(adopter)
    source.fulfill(1)
    assert seen == [1]


def test_moved_observers_replay_when_source_settled():
    source = Promise.rejected("r")
    adopter = defer()
    seen = []
    adopter.fail(seen.append)
    source.become(adopter)
    assert seen == ["r"]
    assert adopter.reason == "r"


def test_moved_handle_can_still_unsubscribe():
    source = defer()
    adopter = defer()
    seen = []
    handle = adopter.subscribe(Observer(on_next=seen.append))
    source.become(adopter)
    handle.unsubscribe()
    source.fulfill(1)
    assert seen == []


def test_observers_added_after_become_wait_on_adopter():
    source = defer()
    adopter = defer()
    source.become(adopter)
    seen = []
    adopter.then(seen.append)
    source.fulfill("later")
    assert seen == ["later"]


def test_moved_observers_fire_before_later_ones():
    source = defer()
    adopter = defer()
    order = []
    adopter.then(lambda _: order.append("moved"))
    source.become(adopter)
    adopter.then(lambda _: order.append("later"))
    source.fulfill(None)
    assert order == ["moved", "later"]


def test_become_into_settled_adopter_fails_fast():
    source = defer()
    adopter = Promise.resolved(1)
    with pytest.raises(InvalidStateError):
        source.become(adopter)


def test_become_self_rejects_with_type_error():
    p = defer()
    p.become(p)
    assert isinstance(p.reason, TypeError)


def test_nested_promises_flatten():
    p = defer()
    inner = defer()
    innermost = defer()
    d = p.then(lambda v: inner.then(lambda w: innermost))
    p.fulfill(0)
    inner.fulfill(0)
    assert d.is_pending
    innermost.fulfill("deep")
    assert d.value == "deep"


def test_raising_moved_observer_does_not_stop_the_others():
    source = Promise.resolved("v")
    adopter = defer()
    seen = []

    def explode(value):
        raise RuntimeError("observer bug")

    adopter.subscribe(Observer(on_next=explode))
    adopter.then(seen.append)
    source.become(adopter)
    assert seen == ["v"]
    assert adopter.value == "v"


def test_unsubscribe_racing_become_is_never_lost():
    for _ in range(200):
        source = defer()
        adopter = defer()
        fired = []
        handle = adopter.subscribe(Observer(on_next=fired.append))
        start = threading.Barrier(2)

        def unsubscribe():
            start.wait()
            handle.unsubscribe()

        worker = threading.Thread(target=unsubscribe)
        worker.start()
        start.wait()
        source.become(adopter)
        worker.join()

        source.fulfill(1)
        assert fired == []
        assert handle.closed
