from dataclasses import dataclass, field
from typing import Optional

ALERT_ACTIVE = "ACTIVE"
ALERT_SENT = "SENT"
ALERT_NEUTRALISED = "NEUTRALISED"

FLIGHT_ON_AIR = "on_air"
FLIGHT_GROUND = "ground"
FLIGHT_REACHED = "reached"

LIVENESS_LIVE = "live"
LIVENESS_STALE = "stale"
LIVENESS_LOST = "lost"

DOWNLOAD_IN_PROGRESS = "DOWNLOADING"


@dataclass
class Sensor:
    """Fixed sensor entity loaded once per session."""

    sensor_db_id: str
    sensor_id: str
    name: str
    sensor_type: str
    latitude: float | None
    longitude: float | None
    area_id: str | None = None
    stream_url: str | None = None


@dataclass
class AreaSummary:
    area_id: str
    name: str


@dataclass
class SensorSummary:
    """Denormalized sensor data delivered together with an alert."""

    sensor_db_id: str
    sensor_id: str
    name: str
    latitude: float | None
    longitude: float | None
    area: AreaSummary | None = None


@dataclass
class Alert:
    """Alert raised by the backend for a sensor detection."""

    alert_id: str
    sensor_db_id: str
    message: str
    status: str
    created_at: str
    alert_type: str = ""
    sensor: SensorSummary | None = None


@dataclass
class Drone:
    """Asset registry entry, read-only for the session."""

    drone_db_id: str
    drone_id: str
    name: str
    drone_type: str
    home_latitude: float | None = None
    home_longitude: float | None = None


@dataclass
class DronePosition:
    """Latest telemetry position sample for a drone."""

    drone_db_id: str
    latitude: float
    longitude: float
    ts: float
    altitude: Optional[float] = None


@dataclass
class DroneTelemetry:
    """Latest full telemetry record for a drone."""

    drone_db_id: str
    latitude: float
    longitude: float
    ts: float
    altitude: Optional[float] = None
    speed: Optional[float] = None
    battery: Optional[float] = None
    mode: Optional[str] = None
    gps_fix: Optional[str] = None
    satellites: Optional[int] = None
    wind_speed: Optional[float] = None
    target_latitude: Optional[float] = None
    target_longitude: Optional[float] = None
    target_distance: Optional[float] = None
    flight_status: Optional[str] = None


@dataclass
class DroneStatus:
    """Derived liveness status, recomputed on every tick."""

    drone_db_id: str
    is_live: bool
    is_stale: bool
    has_alert: bool
    last_update_time: float
    connection_loss_time: float | None = None
    has_ever_received_telemetry: bool = True
    recovered: bool = False

    @property
    def state(self) -> str:
        if self.has_alert:
            return LIVENESS_LOST
        if self.is_stale:
            return LIVENESS_STALE
        return LIVENESS_LIVE


@dataclass
class ActiveMission:
    """Dispatched drone heading to a sensor location."""

    drone_db_id: str
    sensor_db_id: str
    target_latitude: float
    target_longitude: float
    alert_id: str | None = None
    flight_id: str | None = None


@dataclass
class OfflineMap:
    """Offline tile set managed by the backend."""

    map_id: str
    name: str
    tile_root: str
    min_zoom: int
    max_zoom: int
    north: float
    south: float
    east: float
    west: float
    is_active: bool = False
    download_status: str | None = None
    download_progress: float | None = None
    description: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Notice:
    """Operator-facing inline error or notification."""

    notice_id: str
    level: str
    message: str
    source: str
    created_at: str
    context: dict[str, str] = field(default_factory=dict)
