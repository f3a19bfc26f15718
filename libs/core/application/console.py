"""Operator console session: wires the live feed, liveness and dispatch."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from libs.core.application.alert_feed import (
    ALERT_CHIME_THROTTLE_SEC,
    AlertChime,
    AlertFeed,
)
from libs.core.application.contracts import (
    ActiveAlertStore,
    OperatorBackend,
    TelemetryStore,
)
from libs.core.application.dispatch_service import (
    COMMAND_COOLDOWN_SEC,
    DEFAULT_NEUTRALISE_REASON,
    PAYLOAD_PIN,
    MissionDispatcher,
)
from libs.core.application.drone_liveness import (
    LIVENESS_TICK_SEC,
    LIVENESS_WINDOW_SEC,
    LOSS_WINDOW_SEC,
    DroneLiveness,
    LivenessTicker,
)
from libs.core.application.errors import SnapshotFailure, ValidationFailure
from libs.core.application.live_channel import (
    EVENT_ALERT_ACTIVE,
    EVENT_ALERT_RESOLVED,
    LiveChannelConnector,
)
from libs.core.application.map_frame import MapFrame, build_map_frame
from libs.core.application.notices import NoticeBoard
from libs.core.application.offline_maps import OfflineMapCatalog
from libs.core.application.payloads import AlertPayload, AlertResolvedPayload
from libs.core.application.polling_guard import POLL_INTERVAL_SEC
from libs.core.domain.entities import DroneStatus, DroneTelemetry, Sensor

logger = logging.getLogger(__name__)

SENSORS_SOURCE = "sensors.snapshot"


class OperatorConsole:
    """One operator session over the live picture.

    Each piece of mutable state has a single owner: the alert index belongs
    to :class:`AlertFeed`, drone status to :class:`DroneLiveness`. Everything
    else reads.
    """

    def __init__(
        self,
        backend: OperatorBackend,
        alert_store: ActiveAlertStore,
        telemetry_store: TelemetryStore,
        liveness_window_sec: float = LIVENESS_WINDOW_SEC,
        loss_window_sec: float = LOSS_WINDOW_SEC,
        tick_interval_sec: float = LIVENESS_TICK_SEC,
        poll_interval_sec: float = POLL_INTERVAL_SEC,
        neutralise_reason: str = DEFAULT_NEUTRALISE_REASON,
        payload_pin: str = PAYLOAD_PIN,
        command_cooldown_sec: float = COMMAND_COOLDOWN_SEC,
        chime_throttle_sec: float = ALERT_CHIME_THROTTLE_SEC,
        chime: Callable[[Any], None] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._backend = backend
        self._telemetry = telemetry_store
        self._clock = clock
        self._sensors: list[Sensor] = []

        self.notices = NoticeBoard()
        self.connector = LiveChannelConnector()
        self.feed = AlertFeed(
            store=alert_store,
            backend=backend,
            notices=self.notices,
            chime=(
                AlertChime(play=chime, throttle_sec=chime_throttle_sec)
                if chime is not None
                else None
            ),
        )
        self.liveness = DroneLiveness(
            store=telemetry_store,
            liveness_window_sec=liveness_window_sec,
            loss_window_sec=loss_window_sec,
            clock=clock,
        )
        self.ticker = LivenessTicker(self.liveness, interval_sec=tick_interval_sec)
        self.dispatcher = MissionDispatcher(
            feed=self.feed,
            backend=backend,
            notices=self.notices,
            sensor_lookup=self.get_sensor,
            telemetry_lookup=telemetry_store.get_telemetry,
            neutralise_reason=neutralise_reason,
            payload_pin=payload_pin,
            command_cooldown_sec=command_cooldown_sec,
        )
        self.maps = OfflineMapCatalog(
            backend=backend,
            notices=self.notices,
            poll_interval_sec=poll_interval_sec,
        )

        self.connector.subscribe(EVENT_ALERT_ACTIVE, self._on_alert_active)
        self.connector.subscribe(EVENT_ALERT_RESOLVED, self._on_alert_resolved)

    @property
    def backend(self) -> OperatorBackend:
        return self._backend

    @property
    def sensors(self) -> list[Sensor]:
        return list(self._sensors)

    def get_sensor(self, sensor_db_id: str) -> Sensor | None:
        for sensor in self._sensors:
            if sensor.sensor_db_id == sensor_db_id:
                return sensor
        return None

    async def bootstrap(self) -> None:
        await self.load_sensors()
        await self.feed.load_snapshot()
        await self.dispatcher.load_roster(force=True)
        await self.maps.refresh()

    async def load_sensors(self) -> list[Sensor]:
        self.notices.dismiss_source(SENSORS_SOURCE)
        try:
            self._sensors = await self._backend.fetch_sensors()
        except SnapshotFailure as error:
            logger.warning("Sensor snapshot failed: %s", error)
            self.notices.post(
                message=f"Failed to load sensors: {error}",
                source=SENSORS_SOURCE,
            )
            self._sensors = []
        return list(self._sensors)

    def ingest_telemetry(self, telemetry: DroneTelemetry) -> DroneStatus:
        return self.liveness.record_sample(telemetry)

    def render_frame(self, zoom: float) -> MapFrame:
        now = self._clock()
        statuses = self.liveness.evaluate(now)
        return build_map_frame(
            zoom=zoom,
            sensors=self._sensors,
            drones=self.dispatcher.roster,
            positions=self._telemetry.positions(),
            statuses=statuses,
            telemetry=self._telemetry.telemetry(),
            alerts_by_sensor=self.feed.alerts_by_sensor(),
            missions=self.dispatcher.list_missions(),
            connected=self.connector.connected,
            now=now,
        )

    def apply_event(self, event: str, data: dict[str, Any]) -> None:
        """Apply a lifecycle event that arrived outside the push channel."""
        if event == EVENT_ALERT_ACTIVE:
            self._on_alert_active(data)
        elif event == EVENT_ALERT_RESOLVED:
            self._on_alert_resolved(data)
        else:
            raise ValidationFailure(f"Unsupported live event: {event}")

    def start(self) -> None:
        self.ticker.start()

    async def stop(self) -> None:
        await self.ticker.stop()
        await self.maps.close()

    def _on_alert_active(self, data: dict[str, Any]) -> None:
        alert = AlertPayload.model_validate(data).to_entity()
        self.feed.apply_active(alert)

    def _on_alert_resolved(self, data: dict[str, Any]) -> None:
        payload = AlertResolvedPayload.model_validate(data)
        self.feed.apply_resolved(payload.id, payload.status)
