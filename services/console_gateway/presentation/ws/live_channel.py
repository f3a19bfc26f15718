"""WebSocket endpoints for the alert push channel and telemetry stream."""

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from libs.core.application.console import OperatorConsole
from libs.core.application.payloads import TelemetryPayload
from services.console_gateway.dependencies import get_console

logger = logging.getLogger(__name__)

EVENT_TELEMETRY = "telemetry"

ws_router = APIRouter()


@ws_router.websocket("/v1/live")
async def live_channel(websocket: WebSocket) -> None:
    await websocket.accept()
    console = get_console()
    connector = console.connector
    connector.mark_connected()
    try:
        while True:
            message = _decode(await websocket.receive_text())
            if message is None:
                await websocket.send_json({"ack": False})
                continue
            if message.get("event") == EVENT_TELEMETRY:
                state = _ingest(console, message.get("data"))
                await websocket.send_json({"ack": state is not None, "state": state})
                continue
            delivered = connector.handle_message(message)
            await websocket.send_json({"ack": delivered})
    except WebSocketDisconnect:
        pass
    finally:
        connector.mark_disconnected()


@ws_router.websocket("/v1/telemetry/stream")
async def telemetry_stream(websocket: WebSocket) -> None:
    await websocket.accept()
    try:
        while True:
            message = _decode(await websocket.receive_text())
            state = _ingest(get_console(), message)
            await websocket.send_json({"ack": state is not None, "state": state})
    except WebSocketDisconnect:
        pass


def _ingest(console: OperatorConsole, data: object) -> str | None:
    if not isinstance(data, dict):
        return None
    try:
        telemetry = TelemetryPayload.model_validate(data).to_entity()
    except ValidationError as error:
        logger.warning("Invalid telemetry sample dropped: %s", error)
        return None
    return console.ingest_telemetry(telemetry).state


def _decode(text: str) -> dict | None:
    try:
        message = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Non-JSON message dropped")
        return None
    if not isinstance(message, dict):
        logger.warning("Non-object message dropped")
        return None
    return message
