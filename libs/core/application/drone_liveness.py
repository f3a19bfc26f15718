"""Time-driven drone connection health classification."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import replace
from typing import Callable

from libs.core.application.contracts import TelemetryStore
from libs.core.domain.entities import (
    LIVENESS_LIVE,
    LIVENESS_LOST,
    LIVENESS_STALE,
    DroneStatus,
    DroneTelemetry,
)

logger = logging.getLogger(__name__)

LIVENESS_WINDOW_SEC = 10.0
LOSS_WINDOW_SEC = 60.0
LIVENESS_TICK_SEC = 1.0

_SEVERITY = {LIVENESS_LIVE: 0, LIVENESS_STALE: 1, LIVENESS_LOST: 2}


class DroneLiveness:
    """Classifies every tracked drone as live, stale or lost by sample age."""

    def __init__(
        self,
        store: TelemetryStore,
        liveness_window_sec: float = LIVENESS_WINDOW_SEC,
        loss_window_sec: float = LOSS_WINDOW_SEC,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if liveness_window_sec <= 0:
            raise ValueError("liveness window must be positive")
        if loss_window_sec <= liveness_window_sec:
            raise ValueError("loss window must exceed liveness window")
        self._store = store
        self._liveness_window_sec = liveness_window_sec
        self._loss_window_sec = loss_window_sec
        self._clock = clock

    @property
    def liveness_window_sec(self) -> float:
        return self._liveness_window_sec

    @property
    def loss_window_sec(self) -> float:
        return self._loss_window_sec

    def now(self) -> float:
        return self._clock()

    def record_sample(self, telemetry: DroneTelemetry) -> DroneStatus:
        now = self._clock()
        previous = self._store.get_status(telemetry.drone_db_id)
        recovered = previous is not None and previous.state != LIVENESS_LIVE
        if recovered:
            logger.info("Telemetry for drone %s recovered", telemetry.drone_db_id)

        self._store.put_sample(telemetry)
        status = DroneStatus(
            drone_db_id=telemetry.drone_db_id,
            is_live=True,
            is_stale=False,
            has_alert=False,
            last_update_time=now,
            connection_loss_time=None,
            has_ever_received_telemetry=True,
            recovered=recovered,
        )
        self._store.put_status(status)
        return status

    def evaluate(self, now: float | None = None) -> dict[str, DroneStatus]:
        current = self._clock() if now is None else now
        for status in list(self._store.statuses().values()):
            updated = self._classify(status=status, now=current)
            if updated != status:
                self._store.put_status(updated)
        return self._store.statuses()

    def status(self, drone_db_id: str) -> DroneStatus | None:
        return self._store.get_status(drone_db_id)

    def loss_elapsed_sec(
        self,
        drone_db_id: str,
        now: float | None = None,
    ) -> int | None:
        status = self._store.get_status(drone_db_id)
        if status is None or status.is_live or status.connection_loss_time is None:
            return None
        current = self._clock() if now is None else now
        return max(0, int(current - status.connection_loss_time))

    def _classify(self, status: DroneStatus, now: float) -> DroneStatus:
        age = now - status.last_update_time
        if age < self._liveness_window_sec:
            state = LIVENESS_LIVE
        elif age < self._loss_window_sec:
            state = LIVENESS_STALE
        else:
            state = LIVENESS_LOST

        # Decay only moves forward until a new sample arrives.
        if _SEVERITY[state] < _SEVERITY[status.state]:
            state = status.state

        loss_time = status.connection_loss_time
        if state != LIVENESS_LIVE and loss_time is None:
            loss_time = status.last_update_time + self._liveness_window_sec
            logger.warning(
                "Drone %s telemetry %s after %.1fs",
                status.drone_db_id,
                state,
                age,
            )
        elif state == LIVENESS_LOST and status.state != LIVENESS_LOST:
            logger.warning(
                "Drone %s telemetry lost after %.1fs",
                status.drone_db_id,
                age,
            )

        return replace(
            status,
            is_live=state == LIVENESS_LIVE,
            is_stale=state == LIVENESS_STALE,
            has_alert=state == LIVENESS_LOST,
            connection_loss_time=loss_time,
        )


class LivenessTicker:
    """Periodic re-evaluation decoupled from telemetry arrival."""

    def __init__(
        self,
        liveness: DroneLiveness,
        interval_sec: float = LIVENESS_TICK_SEC,
    ) -> None:
        if interval_sec <= 0:
            raise ValueError("tick interval must be positive")
        self._liveness = liveness
        self._interval_sec = interval_sec
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        while True:
            self._liveness.evaluate()
            await asyncio.sleep(self._interval_sec)
