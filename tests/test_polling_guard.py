"""Polling fallback guard tests."""

import asyncio

import pytest

from libs.core.application.errors import SnapshotFailure
from libs.core.application.polling_guard import PollingGuard


class Source:
    def __init__(self, batches: list[list[str]]) -> None:
        self.batches = batches
        self.calls = 0
        self.results: list[list[str]] = []
        self.gate: asyncio.Event | None = None
        self.fail = False

    async def fetch(self) -> list[str]:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise SnapshotFailure("Server returned 503")
        index = min(self.calls - 1, len(self.batches) - 1)
        return self.batches[index]

    def on_result(self, items: list[str]) -> None:
        self.results.append(items)


def _guard(source: Source, interval_sec: float = 0.01) -> PollingGuard[str]:
    return PollingGuard(
        fetch=source.fetch,
        in_progress=lambda item: item == "DOWNLOADING",
        on_result=source.on_result,
        interval_sec=interval_sec,
    )


def test_no_polling_when_nothing_in_progress() -> None:
    source = Source([["COMPLETED"]])
    guard = _guard(source)

    async def scenario() -> bool:
        started = guard.update(["COMPLETED"])
        await asyncio.sleep(0.03)
        return started

    assert not asyncio.run(scenario())
    assert source.calls == 0
    assert not guard.polling


def test_polls_until_condition_clears() -> None:
    source = Source([["DOWNLOADING"], ["DOWNLOADING"], ["COMPLETED"]])
    guard = _guard(source)

    async def scenario() -> None:
        assert guard.update(["DOWNLOADING"])
        assert guard.polling
        for _ in range(100):
            if not guard.polling:
                break
            await asyncio.sleep(0.01)
        await guard.close()

    asyncio.run(scenario())

    assert source.calls == 3
    assert source.results[-1] == ["COMPLETED"]
    assert not guard.polling


def test_overlapping_poll_is_skipped() -> None:
    source = Source([["DOWNLOADING"]])
    guard = _guard(source, interval_sec=60)

    async def scenario() -> tuple[bool, bool]:
        source.gate = asyncio.Event()
        first = asyncio.create_task(guard.poll_once())
        await asyncio.sleep(0)
        assert guard.in_flight
        second = await guard.poll_once()
        source.gate.set()
        result = await first
        await guard.close()
        return result, second

    first, second = asyncio.run(scenario())

    assert first
    assert not second
    assert source.calls == 1
    assert not guard.in_flight


def test_failed_poll_clears_in_flight_flag() -> None:
    source = Source([["DOWNLOADING"]])
    source.fail = True
    guard = _guard(source)

    async def scenario() -> tuple[bool, bool]:
        failed = await guard.poll_once()
        source.fail = False
        recovered = await guard.poll_once()
        await guard.close()
        return failed, recovered

    failed, recovered = asyncio.run(scenario())

    assert not failed
    assert recovered
    assert not guard.in_flight
    assert source.results == [["DOWNLOADING"]]


def test_close_stops_polling_for_good() -> None:
    source = Source([["DOWNLOADING"]])
    guard = _guard(source, interval_sec=0.01)

    async def scenario() -> bool:
        guard.update(["DOWNLOADING"])
        await guard.close()
        calls = source.calls
        await asyncio.sleep(0.03)
        assert source.calls == calls
        return guard.update(["DOWNLOADING"])

    assert not asyncio.run(scenario())
    assert not guard.polling


def test_interval_must_be_positive() -> None:
    with pytest.raises(ValueError):
        _guard(Source([]), interval_sec=0)


def test_failed_poll_reported_to_error_callback() -> None:
    source = Source([["DOWNLOADING"]])
    source.fail = True
    errors: list[str] = []
    guard = PollingGuard(
        fetch=source.fetch,
        in_progress=lambda item: item == "DOWNLOADING",
        on_result=source.on_result,
        on_error=lambda error: errors.append(str(error)),
        interval_sec=60,
    )

    assert not asyncio.run(guard.poll_once())

    assert errors == ["Server returned 503"]
    assert source.results == []
