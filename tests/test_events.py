"""Tests for signals."""

import asyncio
import logging

import pytest

from bulk_job_orchestrator.utils.events import Signal


def test_listeners_run_in_connection_order():
    signal = Signal("done")
    calls = []
    signal.connect(lambda value: calls.append(("first", value)))
    signal.connect(lambda value: calls.append(("second", value)))

    assert signal.emit(1) == 2
    assert calls == [("first", 1), ("second", 1)]


def test_connect_once_and_disconnect():
    signal = Signal("done")
    calls = []
    once = signal.connect_once(lambda: calls.append("once"))
    always = signal.connect(lambda: calls.append("always"))

    signal.emit()
    signal.emit()
    signal.disconnect(always)
    signal.emit()

    assert calls == ["once", "always", "always"]
    assert len(signal) == 0
    assert once is not None


def test_failing_listener_does_not_stop_delivery(caplog):
    signal = Signal("done")
    calls = []

    def broken(value):
        raise RuntimeError("boom")

    signal.connect(broken)
    signal.connect(calls.append)

    with caplog.at_level(logging.ERROR, logger="bulk_job_orchestrator.utils.events"):
        signal.emit("x")

    assert calls == ["x"]
    assert "Listener raised" in caplog.text


@pytest.mark.asyncio
async def test_coroutine_listener_is_scheduled():
    signal = Signal("done")
    seen = asyncio.get_running_loop().create_future()

    async def listener(value):
        seen.set_result(value)

    signal.connect(listener)
    signal.emit(42)

    assert await asyncio.wait_for(seen, 1) == 42
