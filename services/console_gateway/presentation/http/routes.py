from dataclasses import asdict
from typing import Any, NoReturn

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from libs.core.application.console import OperatorConsole
from libs.core.application.dispatch_service import ActionOutcome, ModalState
from libs.core.application.errors import (
    ActionInFlight,
    CommandFailure,
    ConsoleError,
    ModalStateError,
    ValidationFailure,
)
from libs.core.application.payloads import TelemetryPayload
from libs.core.domain.entities import Alert, DroneStatus, OfflineMap
from services.console_gateway.dependencies import get_console

router = APIRouter()


class DroneSelectionRequest(BaseModel):
    drone_id: str


class NeutraliseRequest(BaseModel):
    reason: str | None = None


class DropPayloadRequest(BaseModel):
    pin: str


class TelemetryBatchRequest(BaseModel):
    samples: list[TelemetryPayload] = Field(default_factory=list)


class LiveEventRequest(BaseModel):
    event: str
    data: dict[str, Any]


class MapCreateRequest(BaseModel):
    name: str
    description: str | None = None
    tile_root: str
    min_zoom: int = Field(default=13, ge=0)
    max_zoom: int = Field(default=18, ge=0)
    north: float
    south: float
    east: float
    west: float


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/ready")
def ready() -> dict[str, str]:
    return {"status": "ready"}


@router.get("/version")
def version() -> dict[str, str]:
    return {"version": "0.1.0"}


@router.get("/v1/connection")
async def get_connection_status() -> dict[str, object]:
    return get_console().connector.status()


@router.post("/v1/bootstrap")
async def bootstrap() -> dict[str, object]:
    console = get_console()
    await console.bootstrap()
    return {
        "alerts": len(console.feed.list_active()),
        "sensors": len(console.sensors),
        "drones": len(console.dispatcher.roster),
        "notices": [asdict(notice) for notice in console.notices.list()],
    }


@router.post("/v1/telemetry")
async def ingest_telemetry(payload: TelemetryBatchRequest) -> dict[str, object]:
    console = get_console()
    statuses = [
        console.ingest_telemetry(sample.to_entity()) for sample in payload.samples
    ]
    return {
        "accepted": len(statuses),
        "drones": [_status_to_dict(status, console=console) for status in statuses],
    }


@router.post("/v1/events")
async def apply_event(payload: LiveEventRequest) -> dict[str, object]:
    try:
        get_console().apply_event(payload.event, payload.data)
    except ValueError as error:
        raise HTTPException(status_code=400, detail=str(error)) from error
    return {"event": payload.event, "applied": True}


@router.get("/v1/drones/status")
async def get_drone_statuses() -> list[dict[str, object]]:
    console = get_console()
    statuses = console.liveness.evaluate()
    return [_status_to_dict(status, console=console) for status in statuses.values()]


@router.get("/v1/alerts")
async def get_active_alerts() -> list[dict[str, object]]:
    return [_alert_to_dict(alert) for alert in get_console().feed.list_active()]


@router.get("/v1/modal")
async def get_modal() -> dict[str, object]:
    return _modal_to_dict(get_console().dispatcher.modal)


@router.post("/v1/modal/open/{alert_id}")
async def open_modal(alert_id: str) -> dict[str, object]:
    try:
        modal = await get_console().dispatcher.open_alert(alert_id)
    except ConsoleError as error:
        _raise_http(error)
    return _modal_to_dict(modal)


@router.post("/v1/modal/close")
async def close_modal() -> dict[str, object]:
    try:
        get_console().dispatcher.close_modal()
    except ConsoleError as error:
        _raise_http(error)
    return _modal_to_dict(None)


@router.post("/v1/modal/drone")
async def select_drone(payload: DroneSelectionRequest) -> dict[str, object]:
    try:
        modal = get_console().dispatcher.select_drone(payload.drone_id)
    except ConsoleError as error:
        _raise_http(error)
    return _modal_to_dict(modal)


@router.post("/v1/modal/send-drone")
async def send_drone() -> dict[str, object]:
    try:
        outcome = await get_console().dispatcher.send_drone()
    except ConsoleError as error:
        _raise_http(error)
    return _outcome_to_dict(outcome)


@router.post("/v1/modal/neutralise")
async def neutralise(payload: NeutraliseRequest) -> dict[str, object]:
    try:
        outcome = await get_console().dispatcher.neutralise(payload.reason)
    except ConsoleError as error:
        _raise_http(error)
    return _outcome_to_dict(outcome)


@router.post("/v1/modal/video-feed")
async def open_video_feed() -> dict[str, object]:
    try:
        outcome = await get_console().dispatcher.open_video_feed()
    except ConsoleError as error:
        _raise_http(error)
    return _outcome_to_dict(outcome)


@router.post("/v1/patrol/request")
async def request_patrol(payload: DroneSelectionRequest) -> dict[str, object]:
    try:
        prompt = get_console().dispatcher.request_patrol(payload.drone_id)
    except ConsoleError as error:
        _raise_http(error)
    return {"drone_id": payload.drone_id, "confirm_prompt": prompt}


@router.post("/v1/patrol/confirm")
async def confirm_patrol() -> dict[str, object]:
    try:
        drone_id = await get_console().dispatcher.confirm_patrol()
    except ConsoleError as error:
        _raise_http(error)
    return {"drone_id": drone_id, "status": "patrol_started"}


@router.post("/v1/patrol/cancel")
async def cancel_patrol() -> dict[str, object]:
    try:
        get_console().dispatcher.cancel_patrol()
    except ConsoleError as error:
        _raise_http(error)
    return {"status": "cancelled"}


@router.post("/v1/drones/{drone_id}/recall")
async def recall_drone(drone_id: str) -> dict[str, object]:
    try:
        await get_console().dispatcher.recall(drone_id)
    except ConsoleError as error:
        _raise_http(error)
    return {"drone_id": drone_id, "status": "recall_sent"}


@router.post("/v1/drones/{drone_id}/drop-payload")
async def drop_payload(
    drone_id: str,
    payload: DropPayloadRequest,
) -> dict[str, object]:
    try:
        await get_console().dispatcher.drop_payload(drone_id, payload.pin)
    except ConsoleError as error:
        _raise_http(error)
    return {"drone_id": drone_id, "status": "payload_dropped"}


@router.get("/v1/missions")
async def get_missions() -> list[dict[str, object]]:
    return [asdict(mission) for mission in get_console().dispatcher.list_missions()]


@router.post("/v1/missions/{drone_id}/end")
async def end_mission(drone_id: str) -> dict[str, object]:
    mission = get_console().dispatcher.end_mission(drone_id)
    if mission is None:
        raise HTTPException(status_code=404, detail="Mission not found")
    return asdict(mission)


@router.get("/v1/map/frame")
async def get_map_frame(zoom: float = 15.0) -> dict[str, object]:
    return asdict(get_console().render_frame(zoom))


@router.get("/v1/notices")
async def get_notices() -> list[dict[str, object]]:
    return [asdict(notice) for notice in get_console().notices.list()]


@router.delete("/v1/notices/{notice_id}")
async def dismiss_notice(notice_id: str) -> dict[str, object]:
    if not get_console().notices.dismiss(notice_id):
        raise HTTPException(status_code=404, detail="Notice not found")
    return {"notice_id": notice_id, "dismissed": True}


@router.get("/v1/maps")
async def get_maps(
    name: str | None = None,
    is_active: bool | None = None,
    limit: int | None = None,
    skip: int = 0,
    refresh: bool = False,
) -> dict[str, object]:
    catalog = get_console().maps
    if refresh:
        await catalog.refresh()
    items, total = catalog.list(name=name, is_active=is_active, limit=limit, skip=skip)
    return {
        "data": [_map_to_dict(item) for item in items],
        "pagination": {
            "total": total,
            "limit": limit,
            "skip": skip,
            "has_more": limit is not None and skip + len(items) < total,
        },
        "polling": catalog.polling,
    }


@router.post("/v1/maps")
async def create_map(payload: MapCreateRequest) -> dict[str, object]:
    try:
        created = await get_console().maps.create(payload.model_dump())
    except ConsoleError as error:
        _raise_http(error)
    return _map_to_dict(created)


@router.post("/v1/maps/{map_id}/active")
async def set_map_active(map_id: str) -> dict[str, object]:
    try:
        updated = await get_console().maps.set_active(map_id)
    except ConsoleError as error:
        _raise_http(error)
    return _map_to_dict(updated)


@router.delete("/v1/maps/{map_id}")
async def delete_map(map_id: str) -> dict[str, object]:
    try:
        await get_console().maps.delete(map_id)
    except ConsoleError as error:
        _raise_http(error)
    return {"map_id": map_id, "deleted": True}


def _raise_http(error: ConsoleError) -> NoReturn:
    if isinstance(error, ValidationFailure):
        status_code = 400
    elif isinstance(error, (ModalStateError, ActionInFlight)):
        status_code = 409
    elif isinstance(error, CommandFailure):
        status_code = 502
    else:
        status_code = 500
    raise HTTPException(status_code=status_code, detail=str(error)) from error


def _alert_to_dict(alert: Alert) -> dict[str, object]:
    sensor = alert.sensor
    return {
        "alert_id": alert.alert_id,
        "sensor_db_id": alert.sensor_db_id,
        "type": alert.alert_type,
        "message": alert.message,
        "status": alert.status,
        "created_at": alert.created_at,
        "sensor": asdict(sensor) if sensor is not None else None,
    }


def _modal_to_dict(modal: ModalState | None) -> dict[str, object]:
    if modal is None:
        return {
            "open": False,
            "alert": None,
            "selected_drone_id": None,
            "pending": None,
        }
    console = get_console()
    return {
        "open": True,
        "alert": _alert_to_dict(modal.alert),
        "selected_drone_id": modal.selected_drone_id,
        "pending": console.dispatcher.pending_action(modal.alert.alert_id),
        "drones": [asdict(drone) for drone in console.dispatcher.roster],
    }


def _outcome_to_dict(outcome: ActionOutcome) -> dict[str, object]:
    return {
        "action": outcome.action,
        "alert_id": outcome.alert_id,
        "removed_locally": outcome.removed_locally,
        "flight_id": outcome.flight_id,
        "mission": asdict(outcome.mission) if outcome.mission is not None else None,
        "video_feed": outcome.video_feed,
        "modal_open": get_console().dispatcher.modal is not None,
    }


def _status_to_dict(
    status: DroneStatus,
    console: OperatorConsole,
) -> dict[str, object]:
    return {
        **asdict(status),
        "state": status.state,
        "loss_elapsed_sec": console.liveness.loss_elapsed_sec(status.drone_db_id),
    }


def _map_to_dict(item: OfflineMap) -> dict[str, object]:
    return asdict(item)
