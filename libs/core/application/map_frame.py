"""Per-frame marker computation for the operator map."""

from __future__ import annotations

from dataclasses import dataclass, field

from libs.core.application.geospatial import (
    REACH_RADIUS_M,
    DrawPosition,
    haversine_meters,
    has_coordinates,
    marker_size_for_zoom,
    resolve_draw_position,
)
from libs.core.domain.entities import (
    FLIGHT_GROUND,
    FLIGHT_ON_AIR,
    FLIGHT_REACHED,
    LIVENESS_LIVE,
    LIVENESS_LOST,
    LIVENESS_STALE,
    ActiveMission,
    Alert,
    Drone,
    DronePosition,
    DroneStatus,
    DroneTelemetry,
    Sensor,
)

TARGET_MATCH_TOLERANCE_DEG = 0.00001
STATE_OFFLINE = "offline"

_SENSOR_DEFAULT_COLOR = "#9ca3af"
_SENSOR_DETECTOR_COLOR = "#26f51b"
_SENSOR_ALERT_COLOR = "#b91c1c"


@dataclass
class MarkerStyle:
    color: str
    border_color: str
    icon: str
    pulse: bool = False


@dataclass
class SensorMarker:
    sensor_db_id: str
    sensor_id: str
    name: str
    latitude: float
    longitude: float
    glyph: str
    color: str
    size: int
    has_active_alert: bool
    drone_on_sensor: bool


@dataclass
class DroneMarker:
    drone_db_id: str
    drone_id: str
    name: str
    position: DrawPosition
    altitude: float | None
    size: int
    state: str
    status_label: str
    flight_status: str | None
    style: MarkerStyle
    loss_elapsed_sec: int | None = None


@dataclass
class BaseMarker:
    drone_db_id: str
    latitude: float
    longitude: float


@dataclass
class MissionPath:
    drone_db_id: str
    points: list[tuple[float, float]]
    source: str


@dataclass
class MapFrame:
    """Everything the map widget needs for one render tick."""

    zoom: float
    marker_size: int
    connected: bool
    sensors: list[SensorMarker] = field(default_factory=list)
    drones: list[DroneMarker] = field(default_factory=list)
    bases: list[BaseMarker] = field(default_factory=list)
    paths: list[MissionPath] = field(default_factory=list)


def sensor_glyph(sensor_type: str) -> tuple[str, str]:
    """Marker label and base color for a sensor type tag."""
    tag = sensor_type.lower()
    if "command" in tag:
        return "CC", "#ffffff"
    if "camera" in tag:
        return "C", _SENSOR_DETECTOR_COLOR
    if "thermal" in tag:
        return "T", _SENSOR_DETECTOR_COLOR
    if "infrared" in tag or "pir" in tag:
        return "P", _SENSOR_DEFAULT_COLOR
    if "motion" in tag:
        return "M", _SENSOR_DETECTOR_COLOR
    if "post" in tag:
        return "PT", _SENSOR_DETECTOR_COLOR
    return "S", _SENSOR_DEFAULT_COLOR


def drone_style(state: str, flight_status: str | None) -> MarkerStyle:
    if state == LIVENESS_LOST:
        return MarkerStyle("#DC2626", "#FCA5A5", "⚠️", pulse=True)
    if state == LIVENESS_STALE:
        return MarkerStyle("#F59E0B", "#FCD34D", "❓")
    if state == STATE_OFFLINE:
        return MarkerStyle("#C4B5FD", "#6D28D9", "✈")
    if flight_status == FLIGHT_ON_AIR:
        return MarkerStyle("#3B82F6", "#60A5FA", "✈", pulse=True)
    if flight_status == FLIGHT_REACHED:
        return MarkerStyle("#10B981", "#34D399", "🎯", pulse=True)
    return MarkerStyle("#6B7280", "#9CA3AF", "✈")


def drone_status_label(status: DroneStatus | None, flight_status: str | None) -> str:
    if status is None:
        return "Offline"
    if status.has_alert:
        return "Telemetry Lost"
    if status.is_stale:
        return "Link Unavailable"
    if status.recovered:
        return "Telemetry Recovering"
    return {
        FLIGHT_ON_AIR: "In Flight",
        FLIGHT_REACHED: "At Target",
        FLIGHT_GROUND: "Idle",
    }.get(flight_status or "", "Ready")


def build_map_frame(
    zoom: float,
    sensors: list[Sensor],
    drones: list[Drone],
    positions: dict[str, DronePosition],
    statuses: dict[str, DroneStatus],
    telemetry: dict[str, DroneTelemetry],
    alerts_by_sensor: dict[str, Alert],
    missions: list[ActiveMission],
    connected: bool,
    now: float,
) -> MapFrame:
    size = marker_size_for_zoom(zoom)
    frame = MapFrame(zoom=zoom, marker_size=size, connected=connected)

    for sensor in sensors:
        if not has_coordinates(sensor.latitude, sensor.longitude):
            continue
        glyph, color = sensor_glyph(sensor.sensor_type)
        has_alert = sensor.sensor_db_id in alerts_by_sensor
        frame.sensors.append(
            SensorMarker(
                sensor_db_id=sensor.sensor_db_id,
                sensor_id=sensor.sensor_id,
                name=sensor.name,
                latitude=sensor.latitude,
                longitude=sensor.longitude,
                glyph=glyph,
                color=_SENSOR_ALERT_COLOR if has_alert else color,
                size=size,
                has_active_alert=has_alert,
                drone_on_sensor=_drone_on_sensor(
                    sensor=sensor,
                    positions=positions,
                    telemetry=telemetry,
                )
                is not None,
            )
        )

    roster = {drone.drone_db_id: drone for drone in drones}
    for drone in drones:
        position = positions.get(drone.drone_db_id)
        if position is None:
            continue
        status = statuses.get(drone.drone_db_id)
        state = status.state if status is not None else STATE_OFFLINE
        record = telemetry.get(drone.drone_db_id)
        flight_status = (
            record.flight_status
            if record is not None and state == LIVENESS_LIVE
            else None
        )
        loss_elapsed = None
        if (
            status is not None
            and not status.is_live
            and status.connection_loss_time is not None
        ):
            loss_elapsed = max(0, int(now - status.connection_loss_time))
        frame.drones.append(
            DroneMarker(
                drone_db_id=drone.drone_db_id,
                drone_id=drone.drone_id,
                name=drone.name,
                position=resolve_draw_position(position=position, sensors=sensors),
                altitude=position.altitude,
                size=size,
                state=state,
                status_label=drone_status_label(status, flight_status),
                flight_status=flight_status,
                style=drone_style(state, flight_status),
                loss_elapsed_sec=loss_elapsed,
            )
        )
        if record is not None and has_coordinates(
            drone.home_latitude, drone.home_longitude
        ):
            from_home = haversine_meters(
                position.latitude,
                position.longitude,
                drone.home_latitude,
                drone.home_longitude,
            )
            if from_home > REACH_RADIUS_M:
                frame.bases.append(
                    BaseMarker(
                        drone_db_id=drone.drone_db_id,
                        latitude=drone.home_latitude,
                        longitude=drone.home_longitude,
                    )
                )

    frame.paths = _mission_paths(
        roster=roster,
        positions=positions,
        statuses=statuses,
        telemetry=telemetry,
        missions=missions,
    )
    return frame


def _drone_on_sensor(
    sensor: Sensor,
    positions: dict[str, DronePosition],
    telemetry: dict[str, DroneTelemetry],
) -> str | None:
    for drone_db_id, position in positions.items():
        record = telemetry.get(drone_db_id)
        if record is None or record.flight_status != FLIGHT_REACHED:
            continue
        if record.target_latitude is None or record.target_longitude is None:
            continue
        if (
            abs(record.target_latitude - sensor.latitude) > TARGET_MATCH_TOLERANCE_DEG
            or abs(record.target_longitude - sensor.longitude)
            > TARGET_MATCH_TOLERANCE_DEG
        ):
            continue
        distance = haversine_meters(
            sensor.latitude,
            sensor.longitude,
            position.latitude,
            position.longitude,
        )
        if distance <= REACH_RADIUS_M:
            return drone_db_id
    return None


def _mission_paths(
    roster: dict[str, Drone],
    positions: dict[str, DronePosition],
    statuses: dict[str, DroneStatus],
    telemetry: dict[str, DroneTelemetry],
    missions: list[ActiveMission],
) -> list[MissionPath]:
    paths: dict[str, MissionPath] = {}
    for mission in missions:
        position = positions.get(mission.drone_db_id)
        if position is None:
            continue
        paths[mission.drone_db_id] = MissionPath(
            drone_db_id=mission.drone_db_id,
            points=[
                (position.latitude, position.longitude),
                (mission.target_latitude, mission.target_longitude),
            ],
            source="mission",
        )

    for drone_db_id, record in telemetry.items():
        if drone_db_id in paths or drone_db_id not in roster:
            continue
        status = statuses.get(drone_db_id)
        if status is None or not status.is_live or status.is_stale:
            continue
        if record.flight_status == FLIGHT_GROUND:
            continue
        if record.target_latitude is None or record.target_longitude is None:
            continue
        paths[drone_db_id] = MissionPath(
            drone_db_id=drone_db_id,
            points=[
                (record.latitude, record.longitude),
                (record.target_latitude, record.target_longitude),
            ],
            source="telemetry",
        )
    return list(paths.values())
