"""Tests for observable values."""
import asyncio

from imaging_conformance.conformance.observable import ObservableValue


def test_set_notifies_subscribers():
    value = ObservableValue(name="test")
    seen = []
    value.subscribe(seen.append)

    value.set([1])
    value.set([1])

    assert value.get() == [1]
    assert seen == [[1], [1]]


def test_equal_scalars_do_not_notify():
    value = ObservableValue(None)
    seen = []
    value.subscribe(seen.append)

    value.set(None)
    value.set(5)
    value.set(5)
    value.set(None)

    assert seen == [5, None]


def test_unsubscribe():
    value = ObservableValue(0)
    seen = []
    unsubscribe = value.subscribe(seen.append)

    value.set(1)
    unsubscribe()
    unsubscribe()
    value.set(2)

    assert seen == [1]


def test_failing_listener_does_not_block_others():
    value = ObservableValue(0)
    seen = []

    def broken(_):
        raise RuntimeError("listener bug")

    value.subscribe(broken)
    value.subscribe(seen.append)
    value.set(1)

    assert seen == [1]
    assert value.get() == 1


async def test_coroutine_listener_scheduled():
    value = ObservableValue(0)
    seen = []

    async def listener(new_value):
        seen.append(new_value)

    value.subscribe(listener)
    value.set(3)
    await asyncio.sleep(0)

    assert seen == [3]
