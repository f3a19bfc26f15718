from typing import Protocol, TypedDict

from libs.core.domain.entities import (
    Alert,
    Drone,
    DronePosition,
    DroneStatus,
    DroneTelemetry,
    OfflineMap,
    Sensor,
)


class DispatchCommand(TypedDict):
    """Dispatch payload sent to the backend drone command endpoint."""

    drone_id: str
    alert_id: str
    sensor_id: str
    target_latitude: float
    target_longitude: float


class VideoFeedHandle(TypedDict):
    """Player process launched by the backend for a sensor stream."""

    pid: int | None
    sensor_db_id: str | None
    message: str


class MapQuery(TypedDict, total=False):
    """Filter and pagination for offline map listing."""

    name: str
    is_active: bool
    limit: int
    skip: int


class MapDraft(TypedDict):
    """Offline map creation payload."""

    name: str
    description: str | None
    tile_root: str
    min_zoom: int
    max_zoom: int
    north: float
    south: float
    east: float
    west: float


class ActiveAlertStore(Protocol):
    """Operator-visible active alert collection, newest first."""

    def insert_if_absent(self, alert: Alert) -> bool: ...

    def remove(self, alert_id: str) -> Alert | None: ...

    def get(self, alert_id: str) -> Alert | None: ...

    def list(self) -> list[Alert]: ...

    def clear(self) -> None: ...


class TelemetryStore(Protocol):
    """Latest telemetry sample and derived status per drone."""

    def put_sample(self, telemetry: DroneTelemetry) -> None: ...

    def get_position(self, drone_db_id: str) -> DronePosition | None: ...

    def positions(self) -> dict[str, DronePosition]: ...

    def get_telemetry(self, drone_db_id: str) -> DroneTelemetry | None: ...

    def telemetry(self) -> dict[str, DroneTelemetry]: ...

    def get_status(self, drone_db_id: str) -> DroneStatus | None: ...

    def put_status(self, status: DroneStatus) -> None: ...

    def statuses(self) -> dict[str, DroneStatus]: ...

    def clear(self) -> None: ...


class OperatorBackend(Protocol):
    """Backend collaborator for snapshots and operator commands."""

    async def fetch_active_alerts(self, fresh: bool = True) -> list[Alert]: ...

    async def fetch_sensors(self) -> list[Sensor]: ...

    async def fetch_drones(self) -> list[Drone]: ...

    async def dispatch_drone(self, command: DispatchCommand) -> str | None: ...

    async def neutralise_alert(self, alert_id: str, reason: str) -> None: ...

    async def open_video_feed(self, sensor_db_id: str) -> VideoFeedHandle: ...

    async def start_patrol(self, drone_id: str) -> None: ...

    async def recall_drone(self, drone_id: str) -> None: ...

    async def drop_payload(self, drone_id: str) -> None: ...

    async def list_maps(self, query: MapQuery | None = None) -> list[OfflineMap]: ...

    async def create_map(self, draft: MapDraft) -> OfflineMap: ...

    async def set_map_active(self, map_id: str) -> OfflineMap: ...

    async def delete_map(self, map_id: str) -> None: ...
