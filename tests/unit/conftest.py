from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import pytest

from sqllogger import BufferedLogWriter, InMemoryLogSink


@pytest.fixture(autouse=True)
def _no_threads_in_unit_tests(monkeypatch: pytest.MonkeyPatch):
    """Run `asyncio.to_thread` inline for unit tests.

    The async write variants hand size-triggered flushes to `asyncio.to_thread`.
    In unit tests, this can create threadpool workers that keep the Python
    process alive longer than expected under some runtimes.
    """

    async def _to_thread(func, /, *args, **kwargs):  # noqa: ANN001, D401
        return func(*args, **kwargs)

    monkeypatch.setattr("sqllogger.writer.asyncio.to_thread", _to_thread)
    yield


@pytest.fixture
def sink() -> InMemoryLogSink:
    return InMemoryLogSink()


@pytest.fixture
def make_writer(sink: InMemoryLogSink) -> Iterator[Callable[..., BufferedLogWriter]]:
    """Build writers on the in-memory sink; terminate them after the test.

    Timer intervals default to an hour so scheduled flushes never interfere.
    """
    created: list[BufferedLogWriter] = []

    def _make(**kwargs: Any) -> BufferedLogWriter:
        kwargs.setdefault("sink", sink)
        kwargs.setdefault("flush_interval_s", 3600.0)
        kwargs.setdefault("min_flush_interval_s", 3600.0)
        writer = BufferedLogWriter(**kwargs)
        created.append(writer)
        return writer

    yield _make

    for writer in created:
        try:
            writer.terminate()
        except Exception:  # noqa: BLE001 - tests may leave a failing sink behind
            pass
