"""Operator decision workflow: investigate, dispatch, neutralise, patrol."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from libs.core.application.alert_feed import AlertFeed
from libs.core.application.contracts import (
    DispatchCommand,
    OperatorBackend,
    VideoFeedHandle,
)
from libs.core.application.errors import (
    ActionInFlight,
    CommandFailure,
    ModalStateError,
    SnapshotFailure,
    ValidationFailure,
)
from libs.core.application.geospatial import has_coordinates
from libs.core.application.notices import LEVEL_WARNING, NoticeBoard
from libs.core.domain.entities import (
    FLIGHT_GROUND,
    ActiveMission,
    Alert,
    Drone,
    DroneTelemetry,
    Sensor,
)

logger = logging.getLogger(__name__)

DEFAULT_NEUTRALISE_REASON = "Neutralised by operator"
COMMAND_COOLDOWN_SEC = 10.0
PAYLOAD_PIN = "2580"

ACTION_SEND_DRONE = "send_drone"
ACTION_NEUTRALISE = "neutralise"
ACTION_VIDEO_FEED = "video_feed"

ROSTER_SOURCE = "drones.roster"
DISPATCH_SOURCE = "dispatch"
FLEET_SOURCE = "fleet"


@dataclass
class ModalState:
    """Alert currently open in the decision modal."""

    alert: Alert
    selected_drone_id: str | None = None


@dataclass
class ActionOutcome:
    """Result of an operator action against an alert."""

    action: str
    alert_id: str
    removed_locally: bool
    flight_id: str | None = None
    mission: ActiveMission | None = None
    video_feed: VideoFeedHandle | None = None


@dataclass
class _FleetCommandState:
    last_sent: dict[tuple[str, str], float] = field(default_factory=dict)
    in_flight: set[tuple[str, str]] = field(default_factory=set)


class MissionDispatcher:
    """Drives the alert modal and fleet commands against the backend.

    Local state changes only after a successful command. Removal of the alert
    goes through :meth:`AlertFeed.remove`, the same operation the backend's
    ``alert-resolved`` event uses, so whichever arrives second is a no-op.
    """

    def __init__(
        self,
        feed: AlertFeed,
        backend: OperatorBackend,
        notices: NoticeBoard,
        sensor_lookup: Callable[[str], Sensor | None],
        telemetry_lookup: Callable[[str], DroneTelemetry | None],
        neutralise_reason: str = DEFAULT_NEUTRALISE_REASON,
        payload_pin: str = PAYLOAD_PIN,
        command_cooldown_sec: float = COMMAND_COOLDOWN_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._feed = feed
        self._backend = backend
        self._notices = notices
        self._sensor_lookup = sensor_lookup
        self._telemetry_lookup = telemetry_lookup
        self._neutralise_reason = neutralise_reason
        self._payload_pin = payload_pin
        self._command_cooldown_sec = command_cooldown_sec
        self._clock = clock

        self._roster: list[Drone] | None = None
        self._modal: ModalState | None = None
        self._pending: dict[str, str] = {}
        self._missions: dict[str, ActiveMission] = {}
        self._patrol_candidate: str | None = None
        self._patrol_in_flight = False
        self._fleet = _FleetCommandState()

        feed.on_removed(self._on_alert_removed)

    @property
    def modal(self) -> ModalState | None:
        return self._modal

    @property
    def roster(self) -> list[Drone]:
        return list(self._roster or [])

    @property
    def patrol_candidate(self) -> str | None:
        return self._patrol_candidate

    def pending_action(self, alert_id: str) -> str | None:
        return self._pending.get(alert_id)

    def get_drone(self, drone_db_id: str) -> Drone | None:
        for drone in self._roster or []:
            if drone.drone_db_id == drone_db_id:
                return drone
        return None

    async def load_roster(self, force: bool = False) -> list[Drone]:
        if self._roster is not None and not force:
            return list(self._roster)
        self._notices.dismiss_source(ROSTER_SOURCE)
        try:
            drones = await self._backend.fetch_drones()
        except SnapshotFailure as error:
            logger.warning("Drone roster fetch failed: %s", error)
            self._notices.post(
                message=f"Failed to load drones: {error}",
                source=ROSTER_SOURCE,
            )
            return []
        self._roster = drones
        logger.info("Loaded %d drones", len(drones))
        return list(drones)

    async def open_alert(self, alert_id: str) -> ModalState:
        alert = self._feed.get(alert_id)
        if alert is None:
            raise ModalStateError("Alert is no longer active")
        if self._modal is not None and self._modal.alert.alert_id != alert_id:
            self.close_modal()
        if self._modal is None or self._modal.alert.alert_id != alert_id:
            self._modal = ModalState(alert=alert)
        await self.load_roster()
        return self._modal

    def close_modal(self) -> None:
        if self._modal is None:
            return
        action = self._pending.get(self._modal.alert.alert_id)
        if action is not None:
            raise ActionInFlight(f"Cannot close while {action} is in progress")
        self._modal = None

    def select_drone(self, drone_db_id: str) -> ModalState:
        modal = self._require_modal()
        if self.get_drone(drone_db_id) is None:
            raise self._reject(f"Unknown drone: {drone_db_id}", DISPATCH_SOURCE)
        modal.selected_drone_id = drone_db_id
        return modal

    async def send_drone(self) -> ActionOutcome:
        modal = self._require_modal()
        alert = modal.alert
        self._ensure_idle(alert.alert_id)

        if modal.selected_drone_id is None:
            raise self._reject("Select a drone before sending", DISPATCH_SOURCE)
        latitude, longitude = self._target_of(alert)
        if not has_coordinates(latitude, longitude):
            raise self._reject(
                "Sensor location is missing or invalid; cannot send drone",
                DISPATCH_SOURCE,
            )

        drone_db_id = modal.selected_drone_id
        command: DispatchCommand = {
            "drone_id": drone_db_id,
            "alert_id": alert.alert_id,
            "sensor_id": alert.sensor_db_id,
            "target_latitude": float(latitude),
            "target_longitude": float(longitude),
        }
        self._pending[alert.alert_id] = ACTION_SEND_DRONE
        try:
            flight_id = await self._backend.dispatch_drone(command)
        except CommandFailure as error:
            return self._command_failed(ACTION_SEND_DRONE, alert.alert_id, error)
        finally:
            self._pending.pop(alert.alert_id, None)

        mission = ActiveMission(
            drone_db_id=drone_db_id,
            sensor_db_id=alert.sensor_db_id,
            target_latitude=command["target_latitude"],
            target_longitude=command["target_longitude"],
            alert_id=alert.alert_id,
            flight_id=flight_id,
        )
        self._missions[drone_db_id] = mission
        logger.info(
            "Drone %s dispatched for alert %s (flight %s)",
            drone_db_id,
            alert.alert_id,
            flight_id,
        )
        return ActionOutcome(
            action=ACTION_SEND_DRONE,
            alert_id=alert.alert_id,
            removed_locally=self._settle(alert.alert_id),
            flight_id=flight_id,
            mission=mission,
        )

    async def neutralise(self, reason: str | None = None) -> ActionOutcome:
        modal = self._require_modal()
        alert = modal.alert
        self._ensure_idle(alert.alert_id)

        self._pending[alert.alert_id] = ACTION_NEUTRALISE
        try:
            await self._backend.neutralise_alert(
                alert.alert_id,
                reason or self._neutralise_reason,
            )
        except CommandFailure as error:
            return self._command_failed(ACTION_NEUTRALISE, alert.alert_id, error)
        finally:
            self._pending.pop(alert.alert_id, None)

        logger.info("Alert %s neutralised", alert.alert_id)
        return ActionOutcome(
            action=ACTION_NEUTRALISE,
            alert_id=alert.alert_id,
            removed_locally=self._settle(alert.alert_id),
        )

    async def open_video_feed(self) -> ActionOutcome:
        modal = self._require_modal()
        alert = modal.alert
        self._ensure_idle(alert.alert_id)

        sensor = self._sensor_lookup(alert.sensor_db_id)
        if sensor is None or not sensor.stream_url:
            name = sensor.name if sensor is not None else alert.sensor_db_id
            raise self._reject(
                f"No video stream is configured for sensor {name}",
                DISPATCH_SOURCE,
            )

        self._pending[alert.alert_id] = ACTION_VIDEO_FEED
        try:
            handle = await self._backend.open_video_feed(sensor.sensor_db_id)
        except CommandFailure as error:
            return self._command_failed(ACTION_VIDEO_FEED, alert.alert_id, error)
        finally:
            self._pending.pop(alert.alert_id, None)

        return ActionOutcome(
            action=ACTION_VIDEO_FEED,
            alert_id=alert.alert_id,
            removed_locally=False,
            video_feed=handle,
        )

    def request_patrol(self, drone_db_id: str) -> str:
        drone = self.get_drone(drone_db_id)
        if drone is None:
            raise self._reject(f"Unknown drone: {drone_db_id}", FLEET_SOURCE)
        self._patrol_candidate = drone_db_id
        return f"Start patrol with {drone.name} ({drone.drone_id})?"

    def cancel_patrol(self) -> None:
        if self._patrol_in_flight:
            raise ActionInFlight("Patrol command is in progress")
        self._patrol_candidate = None

    async def confirm_patrol(self) -> str:
        if self._patrol_candidate is None:
            raise self._reject("Select a drone for patrol first", FLEET_SOURCE)
        if self._patrol_in_flight:
            raise ActionInFlight("Patrol command is in progress")

        drone_db_id = self._patrol_candidate
        self._patrol_in_flight = True
        try:
            await self._backend.start_patrol(drone_db_id)
        except CommandFailure as error:
            self._notify_failure("start patrol", error, FLEET_SOURCE)
            raise
        finally:
            self._patrol_in_flight = False

        self._patrol_candidate = None
        logger.info("Patrol started for drone %s", drone_db_id)
        return drone_db_id

    async def recall(self, drone_db_id: str) -> None:
        await self._fleet_command(
            command="recall",
            drone_db_id=drone_db_id,
            send=self._backend.recall_drone,
        )

    async def drop_payload(self, drone_db_id: str, pin: str) -> None:
        if pin != self._payload_pin:
            raise self._reject("Incorrect PIN", FLEET_SOURCE)
        telemetry = self._telemetry_lookup(drone_db_id)
        if telemetry is not None and telemetry.flight_status == FLIGHT_GROUND:
            raise self._reject("Drone is on the ground", FLEET_SOURCE)
        await self._fleet_command(
            command="drop_payload",
            drone_db_id=drone_db_id,
            send=self._backend.drop_payload,
        )

    def cooldown_remaining(self, command: str, drone_db_id: str) -> float:
        last = self._fleet.last_sent.get((command, drone_db_id))
        if last is None:
            return 0.0
        return max(0.0, self._command_cooldown_sec - (self._clock() - last))

    def list_missions(self) -> list[ActiveMission]:
        return list(self._missions.values())

    def end_mission(self, drone_db_id: str) -> ActiveMission | None:
        return self._missions.pop(drone_db_id, None)

    def reset(self) -> None:
        self._roster = None
        self._modal = None
        self._pending.clear()
        self._missions.clear()
        self._patrol_candidate = None
        self._patrol_in_flight = False
        self._fleet = _FleetCommandState()

    async def _fleet_command(
        self,
        command: str,
        drone_db_id: str,
        send: Callable[[str], Awaitable[None]],
    ) -> None:
        key = (command, drone_db_id)
        if key in self._fleet.in_flight:
            raise ActionInFlight(f"{command} is in progress for {drone_db_id}")
        remaining = self.cooldown_remaining(command, drone_db_id)
        if remaining > 0:
            raise self._reject(
                f"Cooldown active, retry in {int(remaining) + 1}s",
                FLEET_SOURCE,
            )

        self._fleet.in_flight.add(key)
        try:
            await send(drone_db_id)
        except CommandFailure as error:
            self._notify_failure(command.replace("_", " "), error, FLEET_SOURCE)
            raise
        finally:
            self._fleet.in_flight.discard(key)
        self._fleet.last_sent[key] = self._clock()
        logger.info("Command %s sent to drone %s", command, drone_db_id)

    def _on_alert_removed(self, alert: Alert) -> None:
        if self._modal is not None and self._modal.alert.alert_id == alert.alert_id:
            logger.info("Open alert %s resolved, closing modal", alert.alert_id)
            self._modal = None

    def _settle(self, alert_id: str) -> bool:
        removed = self._feed.remove(alert_id) is not None
        if self._modal is not None and self._modal.alert.alert_id == alert_id:
            self._modal = None
        return removed

    def _command_failed(
        self,
        action: str,
        alert_id: str,
        error: CommandFailure,
    ) -> ActionOutcome:
        if self._feed.get(alert_id) is None:
            logger.info(
                "%s for resolved alert %s failed, treated as handled: %s",
                action,
                alert_id,
                error,
            )
            return ActionOutcome(
                action=action,
                alert_id=alert_id,
                removed_locally=False,
            )
        self._notify_failure(action.replace("_", " "), error, DISPATCH_SOURCE)
        raise error

    def _notify_failure(self, action: str, error: CommandFailure, source: str) -> None:
        message = str(error) or f"Failed to {action}"
        logger.warning("Command %s failed: %s", action, message)
        self._notices.post(message=message, source=source)

    def _target_of(self, alert: Alert) -> tuple[object, object]:
        if alert.sensor is not None:
            return alert.sensor.latitude, alert.sensor.longitude
        sensor = self._sensor_lookup(alert.sensor_db_id)
        if sensor is None:
            return None, None
        return sensor.latitude, sensor.longitude

    def _require_modal(self) -> ModalState:
        if self._modal is None:
            raise ModalStateError("No alert is open")
        return self._modal

    def _ensure_idle(self, alert_id: str) -> None:
        action = self._pending.get(alert_id)
        if action is not None:
            raise ActionInFlight(f"{action} is already in progress")

    def _reject(self, message: str, source: str) -> ValidationFailure:
        logger.warning("Rejected: %s", message)
        self._notices.post(message=message, source=source, level=LEVEL_WARNING)
        return ValidationFailure(message)
