"""Drone liveness state machine tests."""

import asyncio

import pytest

from libs.core.application.drone_liveness import DroneLiveness, LivenessTicker
from libs.core.domain.entities import LIVENESS_LIVE, LIVENESS_LOST, LIVENESS_STALE
from services.console_gateway.infrastructure.memory_store import (
    InMemoryDatabase,
    InMemoryTelemetryStore,
)
from tests.fakes import FakeClock, make_telemetry

clock = FakeClock()
store = InMemoryTelemetryStore(InMemoryDatabase())
liveness = DroneLiveness(store=store, clock=clock)


def setup_function() -> None:
    clock.now = 1000.0
    store.clear()


def _state(drone_db_id: str = "d1") -> str:
    return liveness.evaluate()[drone_db_id].state


def test_sample_marks_drone_live() -> None:
    status = liveness.record_sample(make_telemetry())

    assert status.is_live
    assert status.state == LIVENESS_LIVE
    assert status.has_ever_received_telemetry
    assert not status.recovered
    assert store.get_position("d1").latitude == 51.0


def test_decays_to_stale_then_lost() -> None:
    liveness.record_sample(make_telemetry())

    clock.advance(9)
    assert _state() == LIVENESS_LIVE

    clock.advance(1)
    assert _state() == LIVENESS_STALE
    assert liveness.status("d1").connection_loss_time == 1010.0

    clock.advance(49)
    assert _state() == LIVENESS_STALE

    clock.advance(1)
    assert _state() == LIVENESS_LOST
    status = liveness.status("d1")
    assert status.has_alert
    assert not status.is_live
    assert not status.is_stale
    assert status.connection_loss_time == 1010.0


def test_new_sample_resets_to_live_and_marks_recovered() -> None:
    liveness.record_sample(make_telemetry())
    clock.advance(70)
    assert _state() == LIVENESS_LOST

    status = liveness.record_sample(make_telemetry(latitude=51.001))

    assert status.state == LIVENESS_LIVE
    assert status.connection_loss_time is None
    assert status.recovered

    clock.advance(1)
    follow_up = liveness.record_sample(make_telemetry(latitude=51.002))
    assert not follow_up.recovered


def test_evaluation_never_moves_backwards() -> None:
    liveness.record_sample(make_telemetry())
    clock.advance(61)
    assert _state() == LIVENESS_LOST

    assert liveness.evaluate(now=1005.0)["d1"].state == LIVENESS_LOST


def test_loss_elapsed_in_whole_seconds() -> None:
    liveness.record_sample(make_telemetry())
    assert liveness.loss_elapsed_sec("d1") is None

    clock.advance(12)
    liveness.evaluate()
    clock.advance(3.7)

    assert liveness.loss_elapsed_sec("d1") == 5


def test_loss_time_is_when_liveness_window_expired() -> None:
    liveness.record_sample(make_telemetry())
    clock.advance(65)

    assert _state() == LIVENESS_LOST
    assert liveness.status("d1").connection_loss_time == 1010.0
    assert liveness.loss_elapsed_sec("d1") == 55


def test_drones_are_tracked_independently() -> None:
    liveness.record_sample(make_telemetry("d1"))
    clock.advance(30)
    liveness.record_sample(make_telemetry("d2"))

    statuses = liveness.evaluate()

    assert statuses["d1"].state == LIVENESS_STALE
    assert statuses["d2"].state == LIVENESS_LIVE


def test_invalid_windows_rejected() -> None:
    with pytest.raises(ValueError):
        DroneLiveness(store=store, liveness_window_sec=0)
    with pytest.raises(ValueError):
        DroneLiveness(store=store, liveness_window_sec=10, loss_window_sec=10)


def test_ticker_reevaluates_without_new_samples() -> None:
    liveness.record_sample(make_telemetry())
    clock.advance(15)
    ticker = LivenessTicker(liveness, interval_sec=0.01)

    async def scenario() -> None:
        ticker.start()
        assert ticker.running
        await asyncio.sleep(0.05)
        await ticker.stop()

    asyncio.run(scenario())

    assert not ticker.running
    assert liveness.status("d1").state == LIVENESS_STALE
