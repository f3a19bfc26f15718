"""Backend REST client tests against a patched transport."""

import asyncio
import io
import json
import socket
from urllib import request
from urllib.error import HTTPError, URLError

import pytest

from libs.core.application.errors import CommandFailure, SnapshotFailure
from libs.infra.http.backend_client import HttpOperatorBackend

client = HttpOperatorBackend(api_base="http://backend.local/")


class FakeResponse(io.BytesIO):
    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _serve(monkeypatch: pytest.MonkeyPatch, handler) -> list[request.Request]:
    seen: list[request.Request] = []

    def urlopen(req: request.Request, timeout: float) -> FakeResponse:
        seen.append(req)
        return handler(req)

    monkeypatch.setattr(request, "urlopen", urlopen)
    return seen


def _json(body: object) -> FakeResponse:
    return FakeResponse(json.dumps(body).encode("utf-8"))


def _http_error(req: request.Request, code: int, body: object) -> HTTPError:
    return HTTPError(
        req.full_url,
        code,
        "error",
        {},
        io.BytesIO(json.dumps(body).encode("utf-8")),
    )


def test_fetch_active_alerts_parses_wire_format(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    seen = _serve(
        monkeypatch,
        lambda req: _json(
            {
                "success": True,
                "data": [
                    {
                        "id": "a1",
                        "type": "motion",
                        "message": "Motion detected",
                        "status": "ACTIVE",
                        "createdAt": "2024-05-01T10:00:00Z",
                        "sensor": {
                            "id": "s1",
                            "sensorId": "SN-1",
                            "name": "Gate",
                            "latitude": "51.5",
                            "longitude": -1.25,
                        },
                    }
                ],
            }
        ),
    )

    alerts = asyncio.run(client.fetch_active_alerts())

    assert seen[0].full_url == "http://backend.local/api/alerts/active?fresh=true"
    assert alerts[0].alert_id == "a1"
    assert alerts[0].sensor_db_id == "s1"
    assert alerts[0].sensor.latitude == 51.5
    assert alerts[0].sensor.longitude == -1.25


def test_dispatch_sends_camel_case_body(monkeypatch: pytest.MonkeyPatch) -> None:
    seen = _serve(monkeypatch, lambda req: _json({"success": True, "flightId": 77}))

    flight_id = asyncio.run(
        client.dispatch_drone(
            {
                "drone_id": "d1",
                "alert_id": "a1",
                "sensor_id": "s1",
                "target_latitude": 51.0,
                "target_longitude": -1.0,
            }
        )
    )

    assert flight_id == "77"
    assert seen[0].get_method() == "POST"
    assert seen[0].full_url == "http://backend.local/api/drone-command"
    assert json.loads(seen[0].data) == {
        "droneDbId": "d1",
        "alertId": "a1",
        "sensorId": "s1",
        "targetLatitude": 51.0,
        "targetLongitude": -1.0,
    }


def test_http_error_message_extracted(monkeypatch: pytest.MonkeyPatch) -> None:
    def handler(req: request.Request) -> FakeResponse:
        raise _http_error(req, 409, {"error": "Alert already resolved"})

    _serve(monkeypatch, handler)

    with pytest.raises(CommandFailure) as excinfo:
        asyncio.run(client.neutralise_alert("a1", "False alarm"))

    assert str(excinfo.value) == "Alert already resolved"
    assert excinfo.value.status_code == 409


def test_http_error_without_body_uses_status(monkeypatch: pytest.MonkeyPatch) -> None:
    def handler(req: request.Request) -> FakeResponse:
        raise HTTPError(req.full_url, 503, "unavailable", {}, io.BytesIO(b""))

    _serve(monkeypatch, handler)

    with pytest.raises(SnapshotFailure, match="Server returned 503"):
        asyncio.run(client.fetch_sensors())


def test_success_false_uses_command_fallback(monkeypatch: pytest.MonkeyPatch) -> None:
    _serve(monkeypatch, lambda req: _json({"success": False}))

    with pytest.raises(CommandFailure, match="Failed to recall drone"):
        asyncio.run(client.recall_drone("d1"))


def test_timeout_and_network_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def timeout(req: request.Request) -> FakeResponse:
        raise URLError(socket.timeout("timed out"))

    _serve(monkeypatch, timeout)
    with pytest.raises(SnapshotFailure, match="Request timed out"):
        asyncio.run(client.fetch_drones())

    def refused(req: request.Request) -> FakeResponse:
        raise URLError("connection refused")

    _serve(monkeypatch, refused)
    with pytest.raises(CommandFailure, match="Network error"):
        asyncio.run(client.start_patrol("d1"))


def test_malformed_snapshot_raises_snapshot_failure(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _serve(monkeypatch, lambda req: _json({"data": [{"name": "no id"}]}))

    with pytest.raises(SnapshotFailure, match="Malformed response"):
        asyncio.run(client.fetch_drones())


def test_list_maps_passes_filters(monkeypatch: pytest.MonkeyPatch) -> None:
    seen = _serve(
        monkeypatch,
        lambda req: _json(
            {
                "data": [
                    {
                        "id": "m1",
                        "name": "Valley",
                        "tileRoot": "/tiles/m1",
                        "minZoom": 10,
                        "maxZoom": 16,
                        "isActive": True,
                        "downloadStatus": "DOWNLOADING",
                        "downloadProgress": 42.5,
                    }
                ],
                "pagination": {"total": 1},
            }
        ),
    )

    maps = asyncio.run(client.list_maps({"name": "Val", "is_active": True}))

    assert "name=Val" in seen[0].full_url
    assert "isActive=true" in seen[0].full_url
    assert maps[0].download_status == "DOWNLOADING"
    assert maps[0].is_active
