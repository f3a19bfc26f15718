"""In-process doubles shared by console tests."""

from __future__ import annotations

import asyncio
from dataclasses import replace

from libs.core.application.contracts import (
    DispatchCommand,
    MapDraft,
    MapQuery,
    OperatorBackend,
    VideoFeedHandle,
)
from libs.core.application.errors import CommandFailure, SnapshotFailure
from libs.core.domain.entities import (
    ALERT_ACTIVE,
    Alert,
    Drone,
    DroneTelemetry,
    OfflineMap,
    Sensor,
    SensorSummary,
)


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBackend(OperatorBackend):
    """Scripted backend recording every command it receives."""

    def __init__(
        self,
        alerts: list[Alert] | None = None,
        sensors: list[Sensor] | None = None,
        drones: list[Drone] | None = None,
        maps: list[OfflineMap] | None = None,
    ) -> None:
        self.alerts = alerts or []
        self.sensors = sensors or []
        self.drones = drones or []
        self.maps = maps or []
        self.calls: list[tuple[str, object]] = []
        self.snapshot_error: str | None = None
        self.command_error: str | None = None
        self.gate: asyncio.Event | None = None
        self.entered: asyncio.Event | None = None
        self.on_fetch = None

    def hold(self) -> None:
        self.gate = asyncio.Event()
        self.entered = asyncio.Event()

    async def fetch_active_alerts(self, fresh: bool = True) -> list[Alert]:
        self.calls.append(("fetch_active_alerts", fresh))
        await self._wait()
        if self.on_fetch is not None:
            self.on_fetch()
        self._fail_snapshot()
        return list(self.alerts)

    async def fetch_sensors(self) -> list[Sensor]:
        self.calls.append(("fetch_sensors", None))
        self._fail_snapshot()
        return list(self.sensors)

    async def fetch_drones(self) -> list[Drone]:
        self.calls.append(("fetch_drones", None))
        self._fail_snapshot()
        return list(self.drones)

    async def dispatch_drone(self, command: DispatchCommand) -> str | None:
        self.calls.append(("dispatch_drone", dict(command)))
        await self._wait()
        self._fail_command()
        return "flight-1"

    async def neutralise_alert(self, alert_id: str, reason: str) -> None:
        self.calls.append(("neutralise_alert", (alert_id, reason)))
        await self._wait()
        self._fail_command()

    async def open_video_feed(self, sensor_db_id: str) -> VideoFeedHandle:
        self.calls.append(("open_video_feed", sensor_db_id))
        self._fail_command()
        return {"pid": 4242, "sensor_db_id": sensor_db_id, "message": "RTSP opened"}

    async def start_patrol(self, drone_id: str) -> None:
        self.calls.append(("start_patrol", drone_id))
        self._fail_command()

    async def recall_drone(self, drone_id: str) -> None:
        self.calls.append(("recall_drone", drone_id))
        self._fail_command()

    async def drop_payload(self, drone_id: str) -> None:
        self.calls.append(("drop_payload", drone_id))
        self._fail_command()

    async def list_maps(self, query: MapQuery | None = None) -> list[OfflineMap]:
        self.calls.append(("list_maps", query))
        await self._wait()
        self._fail_snapshot()
        return [replace(item) for item in self.maps]

    async def create_map(self, draft: MapDraft) -> OfflineMap:
        self.calls.append(("create_map", dict(draft)))
        self._fail_command()
        created = OfflineMap(
            map_id=f"map-{len(self.maps) + 1}",
            name=draft["name"],
            tile_root=draft["tile_root"],
            min_zoom=draft["min_zoom"],
            max_zoom=draft["max_zoom"],
            north=draft["north"],
            south=draft["south"],
            east=draft["east"],
            west=draft["west"],
            description=draft["description"],
            download_status="DOWNLOADING",
            download_progress=0.0,
        )
        self.maps.append(created)
        return replace(created)

    async def set_map_active(self, map_id: str) -> OfflineMap:
        self.calls.append(("set_map_active", map_id))
        self._fail_command()
        for item in self.maps:
            item.is_active = item.map_id == map_id
        return replace(next(item for item in self.maps if item.map_id == map_id))

    async def delete_map(self, map_id: str) -> None:
        self.calls.append(("delete_map", map_id))
        self._fail_command()
        self.maps = [item for item in self.maps if item.map_id != map_id]

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def _wait(self) -> None:
        if self.gate is None:
            return
        if self.entered is not None:
            self.entered.set()
        await self.gate.wait()

    def _fail_snapshot(self) -> None:
        if self.snapshot_error is not None:
            raise SnapshotFailure(self.snapshot_error, status_code=500)

    def _fail_command(self) -> None:
        if self.command_error is not None:
            raise CommandFailure(self.command_error, status_code=500)


def make_sensor(
    sensor_db_id: str = "s1",
    latitude: float | None = 51.0,
    longitude: float | None = -1.0,
    sensor_type: str = "camera",
    stream_url: str | None = None,
) -> Sensor:
    return Sensor(
        sensor_db_id=sensor_db_id,
        sensor_id=f"SN-{sensor_db_id}",
        name=f"Sensor {sensor_db_id}",
        sensor_type=sensor_type,
        latitude=latitude,
        longitude=longitude,
        stream_url=stream_url,
    )


def make_alert(
    alert_id: str = "a1",
    sensor_db_id: str = "s1",
    created_at: str = "2024-05-01T10:00:00Z",
    latitude: float | None = 51.0,
    longitude: float | None = -1.0,
    with_sensor: bool = True,
) -> Alert:
    sensor = (
        SensorSummary(
            sensor_db_id=sensor_db_id,
            sensor_id=f"SN-{sensor_db_id}",
            name=f"Sensor {sensor_db_id}",
            latitude=latitude,
            longitude=longitude,
        )
        if with_sensor
        else None
    )
    return Alert(
        alert_id=alert_id,
        sensor_db_id=sensor_db_id,
        message="Motion detected",
        status=ALERT_ACTIVE,
        created_at=created_at,
        alert_type="motion",
        sensor=sensor,
    )


def make_drone(
    drone_db_id: str = "d1",
    home_latitude: float | None = 51.01,
    home_longitude: float | None = -1.01,
) -> Drone:
    return Drone(
        drone_db_id=drone_db_id,
        drone_id=f"DR-{drone_db_id}",
        name=f"Drone {drone_db_id}",
        drone_type="quad",
        home_latitude=home_latitude,
        home_longitude=home_longitude,
    )


def make_telemetry(
    drone_db_id: str = "d1",
    latitude: float = 51.0,
    longitude: float = -1.0,
    flight_status: str | None = "on_air",
    target: tuple[float, float] | None = None,
) -> DroneTelemetry:
    return DroneTelemetry(
        drone_db_id=drone_db_id,
        latitude=latitude,
        longitude=longitude,
        ts=0.0,
        altitude=30.0,
        battery=80.0,
        target_latitude=target[0] if target else None,
        target_longitude=target[1] if target else None,
        flight_status=flight_status,
    )


def make_map(
    map_id: str = "m1",
    name: str = "Valley",
    download_status: str | None = "COMPLETED",
    is_active: bool = False,
) -> OfflineMap:
    return OfflineMap(
        map_id=map_id,
        name=name,
        tile_root=f"/tiles/{map_id}",
        min_zoom=10,
        max_zoom=16,
        north=51.1,
        south=50.9,
        east=-0.9,
        west=-1.1,
        is_active=is_active,
        download_status=download_status,
    )
