"""Marker declutter math: haversine distance, local offsets, zoom sizing."""

from __future__ import annotations

import math
from dataclasses import dataclass

from libs.core.domain.entities import DronePosition, Sensor

EARTH_RADIUS_M = 6371000.0
METERS_PER_DEGREE = 111111.0

REACH_RADIUS_M = 6.0
COLLISION_OFFSET_NORTH_M = 2.0
COLLISION_OFFSET_EAST_M = 2.0

MARKER_MIN_ZOOM = 10.0
MARKER_MAX_ZOOM = 40.0
MARKER_MIN_SIZE_PX = 18
MARKER_MAX_SIZE_PX = 48


@dataclass
class DrawPosition:
    """Where a drone marker is drawn, next to its raw telemetry position."""

    latitude: float
    longitude: float
    raw_latitude: float
    raw_longitude: float
    collided_sensor_db_id: str | None = None

    @property
    def offset_applied(self) -> bool:
        return self.collided_sensor_db_id is not None


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def offset_lat_lng(
    lat: float,
    lng: float,
    meters_north: float,
    meters_east: float,
) -> tuple[float, float]:
    """Shift a coordinate by a local metric offset (equirectangular)."""
    d_lat = meters_north / METERS_PER_DEGREE
    d_lng = meters_east / (METERS_PER_DEGREE * math.cos(math.radians(lat)))
    return lat + d_lat, lng + d_lng


def has_coordinates(latitude: object, longitude: object) -> bool:
    for value in (latitude, longitude):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if not math.isfinite(value):
            return False
    return True


def find_colliding_sensor(
    position: DronePosition,
    sensors: list[Sensor],
    reach_radius_m: float = REACH_RADIUS_M,
) -> Sensor | None:
    """First sensor, in list order, within reach of the drone."""
    for sensor in sensors:
        if not has_coordinates(sensor.latitude, sensor.longitude):
            continue
        distance = haversine_meters(
            sensor.latitude,
            sensor.longitude,
            position.latitude,
            position.longitude,
        )
        if distance <= reach_radius_m:
            return sensor
    return None


def resolve_draw_position(
    position: DronePosition,
    sensors: list[Sensor],
    reach_radius_m: float = REACH_RADIUS_M,
    offset_north_m: float = COLLISION_OFFSET_NORTH_M,
    offset_east_m: float = COLLISION_OFFSET_EAST_M,
) -> DrawPosition:
    sensor = find_colliding_sensor(
        position=position,
        sensors=sensors,
        reach_radius_m=reach_radius_m,
    )
    if sensor is None:
        return DrawPosition(
            latitude=position.latitude,
            longitude=position.longitude,
            raw_latitude=position.latitude,
            raw_longitude=position.longitude,
        )

    latitude, longitude = offset_lat_lng(
        lat=position.latitude,
        lng=position.longitude,
        meters_north=offset_north_m,
        meters_east=offset_east_m,
    )
    return DrawPosition(
        latitude=latitude,
        longitude=longitude,
        raw_latitude=position.latitude,
        raw_longitude=position.longitude,
        collided_sensor_db_id=sensor.sensor_db_id,
    )


def marker_size_for_zoom(
    zoom: float,
    min_zoom: float = MARKER_MIN_ZOOM,
    max_zoom: float = MARKER_MAX_ZOOM,
    min_size: int = MARKER_MIN_SIZE_PX,
    max_size: int = MARKER_MAX_SIZE_PX,
) -> int:
    clamped = max(min_zoom, min(max_zoom, zoom))
    progress = (clamped - min_zoom) / (max_zoom - min_zoom)
    return math.floor(min_size + (max_size - min_size) * progress + 0.5)
