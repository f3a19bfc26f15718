"""Supervision of the push channel carrying alert lifecycle events."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

logger = logging.getLogger(__name__)

EVENT_ALERT_ACTIVE = "alert-active"
EVENT_ALERT_RESOLVED = "alert-resolved"
LIVE_EVENTS = (EVENT_ALERT_ACTIVE, EVENT_ALERT_RESOLVED)

EventHandler = Callable[[dict[str, Any]], None]
StatusListener = Callable[[bool], None]


class LiveChannelConnector:
    """Tracks connection status and fans inbound events out to subscribers.

    Events are delivered synchronously in arrival order. Reconnection is left
    to the transport; the connector only counts open and closed channels.
    Status is informational and never decides whether an event is delivered.
    """

    def __init__(self) -> None:
        self._open_channels = 0
        self._changed_at: str | None = None
        self._subscribers: dict[str, list[EventHandler]] = {
            event: [] for event in LIVE_EVENTS
        }
        self._status_listeners: list[StatusListener] = []
        self._delivered = 0
        self._dropped = 0

    @property
    def connected(self) -> bool:
        return self._open_channels > 0

    def status(self) -> dict[str, object]:
        return {
            "connected": self.connected,
            "open_channels": self._open_channels,
            "changed_at": self._changed_at,
            "events_delivered": self._delivered,
            "events_dropped": self._dropped,
        }

    def subscribe(self, event: str, handler: EventHandler) -> None:
        if event not in self._subscribers:
            raise ValueError(f"Unsupported live event: {event}")
        self._subscribers[event].append(handler)

    def on_status_change(self, listener: StatusListener) -> None:
        self._status_listeners.append(listener)

    def mark_connected(self) -> None:
        was_connected = self.connected
        self._open_channels += 1
        self._notify(was_connected)

    def mark_disconnected(self) -> None:
        was_connected = self.connected
        self._open_channels = max(0, self._open_channels - 1)
        self._notify(was_connected)

    def handle_message(self, message: dict[str, Any]) -> bool:
        event = message.get("event")
        data = message.get("data")
        if not isinstance(event, str) or not isinstance(data, dict):
            logger.warning("Malformed live message dropped: %r", message)
            self._dropped += 1
            return False
        return self.dispatch(event=event, payload=data)

    def dispatch(self, event: str, payload: dict[str, Any]) -> bool:
        handlers = self._subscribers.get(event)
        if handlers is None:
            logger.debug("Unsupported live event %s ignored", event)
            self._dropped += 1
            return False

        try:
            for handler in handlers:
                handler(payload)
        except ValueError as error:
            logger.warning("Invalid %s payload dropped: %s", event, error)
            self._dropped += 1
            return False
        self._delivered += 1
        return True

    def _notify(self, was_connected: bool) -> None:
        connected = self.connected
        if connected == was_connected:
            return
        self._changed_at = datetime.now(timezone.utc).isoformat()
        logger.info("Live channel %s", "connected" if connected else "disconnected")
        for listener in self._status_listeners:
            listener(connected)
