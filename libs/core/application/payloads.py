"""Wire schemas for backend JSON and push events (camelCase on the wire)."""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from libs.core.domain.entities import (
    ALERT_ACTIVE,
    Alert,
    AreaSummary,
    Drone,
    DroneTelemetry,
    OfflineMap,
    Sensor,
    SensorSummary,
)


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AreaPayload(_WireModel):
    id: str
    area_id: str | None = Field(default=None, alias="areaId")
    name: str = ""


class SensorSummaryPayload(_WireModel):
    id: str
    sensor_id: str | None = Field(default=None, alias="sensorId")
    name: str = ""
    latitude: Any = None
    longitude: Any = None
    area: AreaPayload | None = None

    def to_entity(self) -> SensorSummary:
        return SensorSummary(
            sensor_db_id=self.id,
            sensor_id=self.sensor_id or self.id,
            name=self.name,
            latitude=coerce_coordinate(self.latitude),
            longitude=coerce_coordinate(self.longitude),
            area=(
                AreaSummary(
                    area_id=self.area.area_id or self.area.id,
                    name=self.area.name,
                )
                if self.area is not None
                else None
            ),
        )


class AlertPayload(_WireModel):
    id: str
    sensor_db_id: str | None = Field(default=None, alias="sensorDbId")
    sensor_id: str | None = Field(default=None, alias="sensorId")
    alert_type: str = Field(default="", alias="type")
    message: str = ""
    status: str = ALERT_ACTIVE
    created_at: str = Field(default="", alias="createdAt")
    sensor: SensorSummaryPayload | None = None

    def to_entity(self) -> Alert:
        sensor_db_id = self.sensor_db_id or (
            self.sensor.id if self.sensor is not None else self.sensor_id
        )
        if not sensor_db_id:
            raise ValueError(f"Alert {self.id} has no sensor reference")
        return Alert(
            alert_id=self.id,
            sensor_db_id=sensor_db_id,
            message=self.message,
            status=self.status,
            created_at=self.created_at,
            alert_type=self.alert_type,
            sensor=self.sensor.to_entity() if self.sensor is not None else None,
        )


class AlertResolvedPayload(_WireModel):
    id: str
    status: str | None = None


class SensorPayload(_WireModel):
    id: str
    sensor_id: str | None = Field(default=None, alias="sensorId")
    name: str = ""
    sensor_type: str = Field(default="", alias="sensorType")
    latitude: Any = None
    longitude: Any = None
    area_id: str | None = Field(default=None, alias="areaId")
    rtsp_url: str | None = Field(default=None, alias="rtspUrl")

    def to_entity(self) -> Sensor:
        return Sensor(
            sensor_db_id=self.id,
            sensor_id=self.sensor_id or self.id,
            name=self.name,
            sensor_type=self.sensor_type,
            latitude=coerce_coordinate(self.latitude),
            longitude=coerce_coordinate(self.longitude),
            area_id=self.area_id,
            stream_url=self.rtsp_url or None,
        )


class DronePayload(_WireModel):
    id: str
    drone_id: str | None = Field(default=None, alias="droneId")
    name: str = Field(default="", alias="droneOSName")
    drone_type: str = Field(default="", alias="droneType")
    latitude: Any = None
    longitude: Any = None

    def to_entity(self) -> Drone:
        return Drone(
            drone_db_id=self.id,
            drone_id=self.drone_id or self.id,
            name=self.name,
            drone_type=self.drone_type,
            home_latitude=coerce_coordinate(self.latitude),
            home_longitude=coerce_coordinate(self.longitude),
        )


class TelemetryPayload(_WireModel):
    drone_db_id: str = Field(alias="droneDbId")
    lat: float
    lng: float
    ts: float = 0.0
    alt: float | None = None
    speed: float | None = None
    battery: float | None = None
    mode: str | None = None
    gps_fix: str | None = Field(default=None, alias="gpsFix")
    satellites: int | None = None
    wind_speed: float | None = Field(default=None, alias="windSpeed")
    target_lat: float | None = Field(default=None, alias="targetLat")
    target_lng: float | None = Field(default=None, alias="targetLng")
    target_distance: float | None = Field(default=None, alias="targetDistance")
    status: str | None = None

    def to_entity(self) -> DroneTelemetry:
        return DroneTelemetry(
            drone_db_id=self.drone_db_id,
            latitude=self.lat,
            longitude=self.lng,
            ts=self.ts,
            altitude=self.alt,
            speed=self.speed,
            battery=self.battery,
            mode=self.mode,
            gps_fix=self.gps_fix,
            satellites=self.satellites,
            wind_speed=self.wind_speed,
            target_latitude=self.target_lat,
            target_longitude=self.target_lng,
            target_distance=self.target_distance,
            flight_status=self.status,
        )


class OfflineMapPayload(_WireModel):
    id: str
    name: str
    description: str | None = None
    tile_root: str = Field(default="", alias="tileRoot")
    min_zoom: int = Field(default=0, alias="minZoom")
    max_zoom: int = Field(default=0, alias="maxZoom")
    north: float = 0.0
    south: float = 0.0
    east: float = 0.0
    west: float = 0.0
    is_active: bool = Field(default=False, alias="isActive")
    download_status: str | None = Field(default=None, alias="downloadStatus")
    download_progress: float | None = Field(default=None, alias="downloadProgress")
    created_at: str | None = Field(default=None, alias="createdAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")

    def to_entity(self) -> OfflineMap:
        return OfflineMap(
            map_id=self.id,
            name=self.name,
            tile_root=self.tile_root,
            min_zoom=self.min_zoom,
            max_zoom=self.max_zoom,
            north=self.north,
            south=self.south,
            east=self.east,
            west=self.west,
            is_active=self.is_active,
            download_status=self.download_status,
            download_progress=self.download_progress,
            description=self.description,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


def coerce_coordinate(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None
