"""Tests for ordered change-notification delivery."""

import asyncio

import pytest

from gitstate.repository.events import EventEmitter
from gitstate.repository.state import RepositoryUIState


@pytest.mark.asyncio
async def test_delivery_order_and_mixed_listeners():
    emitter: EventEmitter[int] = EventEmitter("test")
    seen = []

    def sync_listener(value):
        seen.append(("sync", value))

    async def async_listener(value):
        await asyncio.sleep(0)
        seen.append(("async", value))

    emitter(sync_listener)
    emitter.subscribe(async_listener)
    emitter.fire(1)
    emitter.fire(2)
    await emitter.flush()

    assert seen == [("sync", 1), ("async", 1), ("sync", 2), ("async", 2)]
    await emitter.close()


@pytest.mark.asyncio
async def test_fire_does_not_call_listeners_inline():
    emitter: EventEmitter[str] = EventEmitter("test")
    seen = []
    emitter(seen.append)
    emitter.fire("x")
    assert seen == []
    await emitter.flush()
    assert seen == ["x"]
    await emitter.close()


@pytest.mark.asyncio
async def test_failing_listener_does_not_stop_others(caplog):
    emitter: EventEmitter[str] = EventEmitter("test")
    seen = []

    def broken(_):
        raise RuntimeError("boom")

    emitter(broken)
    emitter(seen.append)
    emitter.fire("event")
    await emitter.flush()

    assert seen == ["event"]
    assert "boom" in caplog.text
    await emitter.close()


@pytest.mark.asyncio
async def test_dispose_unsubscribes():
    emitter: EventEmitter[int] = EventEmitter("test")
    seen = []
    subscription = emitter(seen.append)
    assert emitter.listener_count == 1
    subscription.dispose()
    subscription.dispose()
    assert emitter.listener_count == 0
    emitter.fire(1)
    await emitter.flush()
    assert seen == []
    await emitter.close()


@pytest.mark.asyncio
async def test_fire_after_close_is_ignored():
    emitter: EventEmitter[int] = EventEmitter("test")
    seen = []
    emitter(seen.append)
    await emitter.close()
    emitter.fire(1)
    await emitter.flush()
    assert seen == []


def test_fire_without_running_loop_is_dropped():
    emitter: EventEmitter[int] = EventEmitter("test")
    seen = []
    emitter(seen.append)
    emitter.fire(1)
    assert seen == []


def test_ui_selection_toggles_outside_event_loop():
    ui = RepositoryUIState()
    ui.set_selected(True)
    assert ui.selected is True
    ui.set_selected(False)
    assert ui.selected is False


@pytest.mark.asyncio
async def test_ui_selection_notifies_inside_event_loop():
    ui = RepositoryUIState()
    seen = []
    ui.on_did_change(seen.append)
    ui.set_selected(True)
    ui.set_selected(True)
    await ui.on_did_change.flush()
    assert seen == [True]
    await ui.on_did_change.close()
