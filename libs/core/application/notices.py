"""Inline errors and notifications shown to the operator."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from libs.core.domain.entities import Notice

LEVEL_ERROR = "error"
LEVEL_WARNING = "warning"
LEVEL_INFO = "info"


class NoticeBoard:
    """Dismissible operator notices, newest first."""

    def __init__(self) -> None:
        self._notices: list[Notice] = []

    def post(
        self,
        message: str,
        source: str,
        level: str = LEVEL_ERROR,
        context: dict[str, str] | None = None,
    ) -> Notice:
        notice = Notice(
            notice_id=str(uuid4()),
            level=level,
            message=message,
            source=source,
            created_at=datetime.now(timezone.utc).isoformat(),
            context=context or {},
        )
        self._notices.insert(0, notice)
        return notice

    def list(self, source: str | None = None) -> list[Notice]:
        if source is None:
            return list(self._notices)
        return [notice for notice in self._notices if notice.source == source]

    def dismiss(self, notice_id: str) -> bool:
        before = len(self._notices)
        self._notices = [
            notice for notice in self._notices if notice.notice_id != notice_id
        ]
        return len(self._notices) != before

    def dismiss_source(self, source: str) -> None:
        self._notices = [
            notice for notice in self._notices if notice.source != source
        ]

    def clear(self) -> None:
        self._notices.clear()
