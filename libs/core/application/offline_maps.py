"""Offline map catalog with download-progress polling."""

from __future__ import annotations

import logging

from libs.core.application.contracts import MapDraft, OperatorBackend
from libs.core.application.errors import (
    CommandFailure,
    SnapshotFailure,
    ValidationFailure,
)
from libs.core.application.notices import NoticeBoard
from libs.core.application.polling_guard import POLL_INTERVAL_SEC, PollingGuard
from libs.core.domain.entities import DOWNLOAD_IN_PROGRESS, OfflineMap

logger = logging.getLogger(__name__)

MAPS_SOURCE = "maps"


class OfflineMapCatalog:
    """Local view of offline maps, re-polled while any download is running."""

    def __init__(
        self,
        backend: OperatorBackend,
        notices: NoticeBoard,
        poll_interval_sec: float = POLL_INTERVAL_SEC,
    ) -> None:
        self._backend = backend
        self._notices = notices
        self._maps: dict[str, OfflineMap] = {}
        self._guard: PollingGuard[OfflineMap] = PollingGuard(
            fetch=self._backend.list_maps,
            in_progress=_is_downloading,
            on_result=self._merge,
            on_error=self._notify_poll_failure,
            interval_sec=poll_interval_sec,
        )

    @property
    def polling(self) -> bool:
        return self._guard.polling

    def list(
        self,
        name: str | None = None,
        is_active: bool | None = None,
        limit: int | None = None,
        skip: int = 0,
    ) -> tuple[list[OfflineMap], int]:
        items = list(self._maps.values())
        if name:
            needle = name.lower()
            items = [item for item in items if needle in item.name.lower()]
        if is_active is not None:
            items = [item for item in items if item.is_active == is_active]
        total = len(items)
        end = None if limit is None else skip + limit
        return items[skip:end], total

    def active_map(self) -> OfflineMap | None:
        for item in self._maps.values():
            if item.is_active:
                return item
        return None

    async def refresh(self) -> list[OfflineMap]:
        self._notices.dismiss_source(MAPS_SOURCE)
        try:
            items = await self._backend.list_maps()
        except SnapshotFailure as error:
            logger.warning("Offline map list failed: %s", error)
            self._notices.post(
                message=f"Failed to fetch maps: {error}",
                source=MAPS_SOURCE,
            )
            return list(self._maps.values())
        self._merge(items)
        self._guard.update(items)
        return items

    async def create(self, draft: MapDraft) -> OfflineMap:
        _validate_draft(draft)
        try:
            created = await self._backend.create_map(draft)
        except CommandFailure as error:
            self._notify_failure("create map", error)
            raise
        self._maps[created.map_id] = created
        self._guard.update(list(self._maps.values()))
        logger.info("Offline map %s created", created.map_id)
        return created

    async def set_active(self, map_id: str) -> OfflineMap:
        try:
            updated = await self._backend.set_map_active(map_id)
        except CommandFailure as error:
            self._notify_failure("set map active", error)
            raise
        for item in self._maps.values():
            item.is_active = False
        self._maps[updated.map_id] = updated
        return updated

    async def delete(self, map_id: str) -> None:
        try:
            await self._backend.delete_map(map_id)
        except CommandFailure as error:
            self._notify_failure("delete map", error)
            raise
        self._maps.pop(map_id, None)
        self._guard.update(list(self._maps.values()))

    async def close(self) -> None:
        await self._guard.close()

    def reset(self) -> None:
        self._maps.clear()

    def _merge(self, items: list[OfflineMap]) -> None:
        self._maps = {item.map_id: item for item in items}

    def _notify_poll_failure(self, error: SnapshotFailure) -> None:
        self._notices.dismiss_source(MAPS_SOURCE)
        self._notices.post(
            message=f"Failed to fetch maps: {error}",
            source=MAPS_SOURCE,
        )

    def _notify_failure(self, action: str, error: CommandFailure) -> None:
        message = str(error) or f"Failed to {action}"
        logger.warning("Map command %s failed: %s", action, message)
        self._notices.post(message=message, source=MAPS_SOURCE)


def _is_downloading(item: OfflineMap) -> bool:
    return item.download_status == DOWNLOAD_IN_PROGRESS


def _validate_draft(draft: MapDraft) -> None:
    problems: list[str] = []
    if not draft["name"].strip():
        problems.append("Please enter a name for the map")
    if not draft["tile_root"].strip():
        problems.append("Tile root is required")
    if not -90 <= draft["south"] < draft["north"] <= 90:
        problems.append("North must be greater than south and within [-90, 90]")
    if not -180 <= draft["west"] < draft["east"] <= 180:
        problems.append("East must be greater than west and within [-180, 180]")
    if not 0 <= draft["min_zoom"] <= draft["max_zoom"]:
        problems.append("Min zoom must not exceed max zoom")
    if problems:
        raise ValidationFailure("; ".join(problems))
