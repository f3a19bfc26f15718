"""In-memory session state for the operator console."""

from dataclasses import dataclass, field

from libs.core.application.contracts import ActiveAlertStore, TelemetryStore
from libs.core.domain.entities import (
    Alert,
    DronePosition,
    DroneStatus,
    DroneTelemetry,
)


@dataclass
class InMemoryDatabase:
    """Working memory of one console session, rebuilt from the live feed."""

    active_alerts: list[Alert] = field(default_factory=list)
    telemetry: dict[str, DroneTelemetry] = field(default_factory=dict)
    statuses: dict[str, DroneStatus] = field(default_factory=dict)

    def clear(self) -> None:
        self.active_alerts.clear()
        self.telemetry.clear()
        self.statuses.clear()


class InMemoryActiveAlertStore(ActiveAlertStore):
    """Active alerts ordered newest first, unique by identifier."""

    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db

    def insert_if_absent(self, alert: Alert) -> bool:
        if any(item.alert_id == alert.alert_id for item in self._db.active_alerts):
            return False
        self._db.active_alerts = [alert, *self._db.active_alerts]
        return True

    def remove(self, alert_id: str) -> Alert | None:
        removed = next(
            (item for item in self._db.active_alerts if item.alert_id == alert_id),
            None,
        )
        if removed is None:
            return None
        self._db.active_alerts = [
            item for item in self._db.active_alerts if item.alert_id != alert_id
        ]
        return removed

    def get(self, alert_id: str) -> Alert | None:
        return next(
            (item for item in self._db.active_alerts if item.alert_id == alert_id),
            None,
        )

    def list(self) -> list[Alert]:
        return list(self._db.active_alerts)

    def clear(self) -> None:
        self._db.active_alerts = []


class InMemoryTelemetryStore(TelemetryStore):
    """Latest telemetry record and derived status keyed by drone."""

    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db

    def put_sample(self, telemetry: DroneTelemetry) -> None:
        self._db.telemetry = {**self._db.telemetry, telemetry.drone_db_id: telemetry}

    def get_position(self, drone_db_id: str) -> DronePosition | None:
        record = self._db.telemetry.get(drone_db_id)
        return _to_position(record) if record is not None else None

    def positions(self) -> dict[str, DronePosition]:
        return {
            drone_db_id: _to_position(record)
            for drone_db_id, record in self._db.telemetry.items()
        }

    def get_telemetry(self, drone_db_id: str) -> DroneTelemetry | None:
        return self._db.telemetry.get(drone_db_id)

    def telemetry(self) -> dict[str, DroneTelemetry]:
        return dict(self._db.telemetry)

    def get_status(self, drone_db_id: str) -> DroneStatus | None:
        return self._db.statuses.get(drone_db_id)

    def put_status(self, status: DroneStatus) -> None:
        self._db.statuses = {**self._db.statuses, status.drone_db_id: status}

    def statuses(self) -> dict[str, DroneStatus]:
        return dict(self._db.statuses)

    def clear(self) -> None:
        self._db.telemetry = {}
        self._db.statuses = {}


def _to_position(record: DroneTelemetry) -> DronePosition:
    return DronePosition(
        drone_db_id=record.drone_db_id,
        latitude=record.latitude,
        longitude=record.longitude,
        ts=record.ts,
        altitude=record.altitude,
    )
