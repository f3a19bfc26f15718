"""REST client for the surveillance backend."""

from __future__ import annotations

import asyncio
import json
import logging
import socket
from typing import Any
from urllib import parse, request
from urllib.error import HTTPError, URLError

from libs.core.application.contracts import (
    DispatchCommand,
    MapDraft,
    MapQuery,
    OperatorBackend,
    VideoFeedHandle,
)
from libs.core.application.errors import CommandFailure, SnapshotFailure
from libs.core.application.payloads import (
    AlertPayload,
    DronePayload,
    OfflineMapPayload,
    SensorPayload,
)
from libs.core.domain.entities import Alert, Drone, OfflineMap, Sensor

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 10.0


class BackendRequestError(Exception):
    """Transport or protocol error talking to the backend."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class HttpOperatorBackend(OperatorBackend):
    """Blocking urllib calls moved off the event loop with ``to_thread``."""

    def __init__(self, api_base: str, timeout_sec: float = DEFAULT_TIMEOUT_SEC) -> None:
        self._api_base = api_base.rstrip("/")
        self._timeout_sec = timeout_sec

    async def fetch_active_alerts(self, fresh: bool = True) -> list[Alert]:
        query = {"fresh": "true"} if fresh else None
        body = await self._snapshot("GET", "/api/alerts/active", query=query)
        return _parse_items(AlertPayload, body)

    async def fetch_sensors(self) -> list[Sensor]:
        body = await self._snapshot("GET", "/api/sensors")
        return _parse_items(SensorPayload, body)

    async def fetch_drones(self) -> list[Drone]:
        body = await self._snapshot("GET", "/api/droneos")
        return _parse_items(DronePayload, body)

    async def dispatch_drone(self, command: DispatchCommand) -> str | None:
        body = await self._command(
            "POST",
            "/api/drone-command",
            payload={
                "droneDbId": command["drone_id"],
                "alertId": command["alert_id"],
                "sensorId": command["sensor_id"],
                "targetLatitude": command["target_latitude"],
                "targetLongitude": command["target_longitude"],
            },
            fallback="Failed to send drone",
        )
        flight_id = body.get("flightId") if isinstance(body, dict) else None
        return str(flight_id) if flight_id is not None else None

    async def neutralise_alert(self, alert_id: str, reason: str) -> None:
        await self._command(
            "POST",
            f"/api/alerts/{parse.quote(alert_id)}/neutralise",
            payload={"reason": reason},
            fallback="Failed to neutralise alert",
        )

    async def open_video_feed(self, sensor_db_id: str) -> VideoFeedHandle:
        body = await self._command(
            "POST",
            "/api/rtsp/open",
            payload={"sensorDbId": sensor_db_id},
            fallback="Failed to open video feed",
        )
        source = body if isinstance(body, dict) else {}
        data = source.get("data") if isinstance(source.get("data"), dict) else source
        pid = data.get("pid", source.get("pid"))
        launched = data.get("sensorDbId", source.get("sensorDbId"))
        return {
            "pid": pid if isinstance(pid, int) else None,
            "sensor_db_id": launched if isinstance(launched, str) else None,
            "message": str(source.get("message") or "RTSP opened"),
        }

    async def start_patrol(self, drone_id: str) -> None:
        await self._command(
            "POST",
            "/api/drone-command/patrol",
            payload={"droneDbId": drone_id},
            fallback="Failed to start patrol",
        )

    async def recall_drone(self, drone_id: str) -> None:
        await self._command(
            "POST",
            "/api/drone-command/recall",
            payload={"droneDbId": drone_id},
            fallback="Failed to recall drone",
        )

    async def drop_payload(self, drone_id: str) -> None:
        await self._command(
            "POST",
            "/api/drone-command/drop-payload",
            payload={"droneDbId": drone_id},
            fallback="Failed to drop payload",
        )

    async def list_maps(self, query: MapQuery | None = None) -> list[OfflineMap]:
        params: dict[str, str] = {}
        if query:
            if "name" in query:
                params["name"] = query["name"]
            if "is_active" in query:
                params["isActive"] = "true" if query["is_active"] else "false"
            if "limit" in query:
                params["limit"] = str(query["limit"])
            if "skip" in query:
                params["skip"] = str(query["skip"])
        body = await self._snapshot("GET", "/api/maps", query=params or None)
        return _parse_items(OfflineMapPayload, body)

    async def create_map(self, draft: MapDraft) -> OfflineMap:
        body = await self._command(
            "POST",
            "/api/maps",
            payload={
                "name": draft["name"],
                "description": draft["description"],
                "tileRoot": draft["tile_root"],
                "minZoom": draft["min_zoom"],
                "maxZoom": draft["max_zoom"],
                "north": draft["north"],
                "south": draft["south"],
                "east": draft["east"],
                "west": draft["west"],
            },
            fallback="Failed to create map",
        )
        return _map_from_body(body, fallback="Failed to create map")

    async def set_map_active(self, map_id: str) -> OfflineMap:
        body = await self._command(
            "POST",
            f"/api/maps/{parse.quote(map_id)}/active",
            fallback="Failed to set map active",
        )
        return _map_from_body(body, fallback="Failed to set map active")

    async def delete_map(self, map_id: str) -> None:
        await self._command(
            "DELETE",
            f"/api/maps/{parse.quote(map_id)}",
            fallback="Failed to delete map",
        )

    async def _snapshot(
        self,
        method: str,
        path: str,
        query: dict[str, str] | None = None,
    ) -> Any:
        try:
            return await asyncio.to_thread(self._call, method, path, None, query)
        except BackendRequestError as error:
            raise SnapshotFailure(
                str(error) or "Request failed",
                status_code=error.status_code,
            ) from error

    async def _command(
        self,
        method: str,
        path: str,
        fallback: str,
        payload: dict[str, object] | None = None,
    ) -> Any:
        try:
            return await asyncio.to_thread(self._call, method, path, payload, None)
        except BackendRequestError as error:
            raise CommandFailure(
                str(error) or fallback,
                status_code=error.status_code,
            ) from error

    def _call(
        self,
        method: str,
        path: str,
        payload: dict[str, object] | None,
        query: dict[str, str] | None,
    ) -> Any:
        url = f"{self._api_base}{path}"
        if query:
            url = f"{url}?{parse.urlencode(query)}"
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        req = request.Request(
            url=url,
            data=data,
            headers={"Content-Type": "application/json"},
            method=method,
        )
        try:
            with request.urlopen(req, timeout=self._timeout_sec) as response:
                body = _decode(response.read())
        except HTTPError as error:
            body = _decode(error.read())
            raise BackendRequestError(
                _error_message(body) or f"Server returned {error.code}",
                status_code=error.code,
            ) from error
        except (socket.timeout, TimeoutError) as error:
            raise BackendRequestError("Request timed out") from error
        except URLError as error:
            if isinstance(error.reason, (socket.timeout, TimeoutError)):
                raise BackendRequestError("Request timed out") from error
            raise BackendRequestError(f"Network error: {error.reason}") from error
        except OSError as error:
            raise BackendRequestError(f"Network error: {error}") from error

        if isinstance(body, dict) and body.get("success") is False:
            raise BackendRequestError(_error_message(body) or "")
        logger.debug("%s %s ok", method, path)
        return body


def _decode(raw: bytes) -> Any:
    text = raw.decode("utf-8", errors="replace").strip()
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def _error_message(body: Any) -> str | None:
    if isinstance(body, dict):
        for key in ("error", "message"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
        return None
    if isinstance(body, str) and body:
        return body
    return None


def _data_list(body: Any) -> list[dict[str, Any]]:
    if isinstance(body, list):
        items = body
    elif isinstance(body, dict) and isinstance(body.get("data"), list):
        items = body["data"]
    else:
        raise SnapshotFailure("Unexpected response shape")
    return [item for item in items if isinstance(item, dict)]


def _map_from_body(body: Any, fallback: str) -> OfflineMap:
    data = body.get("data") if isinstance(body, dict) else None
    if not isinstance(data, dict):
        raise CommandFailure(fallback)
    return OfflineMapPayload.model_validate(data).to_entity()


def _parse_items(model: Any, body: Any) -> list[Any]:
    try:
        return [model.model_validate(item).to_entity() for item in _data_list(body)]
    except ValueError as error:
        raise SnapshotFailure(f"Malformed response: {error}") from error
