"""Active alert index fed by snapshot fetches and lifecycle events."""

from __future__ import annotations

import logging
import time
from typing import Callable

from libs.core.application.contracts import ActiveAlertStore, OperatorBackend
from libs.core.application.errors import SnapshotFailure
from libs.core.application.notices import NoticeBoard
from libs.core.domain.entities import Alert

logger = logging.getLogger(__name__)

ALERT_CHIME_THROTTLE_SEC = 8.0
SNAPSHOT_SOURCE = "alerts.snapshot"

RemovalListener = Callable[[Alert], None]


class AlertChime:
    """Throttled audible cue for newly raised alerts."""

    def __init__(
        self,
        play: Callable[[Alert], None],
        throttle_sec: float = ALERT_CHIME_THROTTLE_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._play = play
        self._throttle_sec = throttle_sec
        self._clock = clock
        self._last_played: float | None = None

    def ring(self, alert: Alert) -> bool:
        now = self._clock()
        if (
            self._last_played is not None
            and now - self._last_played < self._throttle_sec
        ):
            logger.debug(
                "Alert chime throttled for %s, %.1fs left",
                alert.alert_id,
                self._throttle_sec - (now - self._last_played),
            )
            return False
        self._last_played = now
        self._play(alert)
        return True


class AlertFeed:
    """Owns the active alert collection.

    Two paths remove alerts: the backend's ``alert-resolved`` event and the
    optimistic removal after a successful operator command. Both converge on
    :meth:`remove`, which is idempotent.
    """

    def __init__(
        self,
        store: ActiveAlertStore,
        backend: OperatorBackend,
        notices: NoticeBoard,
        chime: AlertChime | None = None,
    ) -> None:
        self._store = store
        self._backend = backend
        self._notices = notices
        self._chime = chime
        self._removal_listeners: list[RemovalListener] = []
        self._fetching = False
        self._resolved_during_fetch: set[str] = set()

    def on_removed(self, listener: RemovalListener) -> None:
        self._removal_listeners.append(listener)

    def list_active(self) -> list[Alert]:
        return self._store.list()

    def get(self, alert_id: str) -> Alert | None:
        return self._store.get(alert_id)

    def alerts_by_sensor(self) -> dict[str, Alert]:
        by_sensor: dict[str, Alert] = {}
        for alert in self._store.list():
            by_sensor.setdefault(alert.sensor_db_id, alert)
        return by_sensor

    async def load_snapshot(self) -> list[Alert]:
        self._notices.dismiss_source(SNAPSHOT_SOURCE)
        self._fetching = True
        self._resolved_during_fetch.clear()
        try:
            snapshot = await self._backend.fetch_active_alerts(fresh=True)
        except SnapshotFailure as error:
            logger.warning("Active alert snapshot failed: %s", error)
            self._notices.post(
                message=f"Failed to load active alerts: {error}",
                source=SNAPSHOT_SOURCE,
            )
            return self._store.list()
        finally:
            self._fetching = False

        pushed = self._store.list()
        known = {alert.alert_id for alert in pushed}
        merged = list(pushed)
        for alert in sorted(snapshot, key=lambda item: item.created_at, reverse=True):
            if alert.alert_id in known or alert.alert_id in self._resolved_during_fetch:
                continue
            known.add(alert.alert_id)
            merged.append(alert)
        self._resolved_during_fetch.clear()

        self._store.clear()
        for alert in reversed(merged):
            self._store.insert_if_absent(alert)
        logger.info("Loaded %d active alerts", len(merged))
        return self._store.list()

    def apply_active(self, alert: Alert) -> bool:
        inserted = self._store.insert_if_absent(alert)
        if not inserted:
            logger.debug("Duplicate alert-active for %s absorbed", alert.alert_id)
            return False
        if self._chime is not None:
            self._chime.ring(alert)
        return True

    def apply_resolved(self, alert_id: str, status: str | None = None) -> Alert | None:
        if self._fetching:
            self._resolved_during_fetch.add(alert_id)
        removed = self.remove(alert_id)
        if removed is None:
            logger.debug("alert-resolved for absent %s absorbed", alert_id)
        else:
            logger.info("Alert %s resolved (%s)", alert_id, status or "resolved")
        return removed

    def remove(self, alert_id: str) -> Alert | None:
        removed = self._store.remove(alert_id)
        if removed is None:
            return None
        for listener in self._removal_listeners:
            listener(removed)
        return removed
