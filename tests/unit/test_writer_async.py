from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from sqllogger import BufferedLogWriter, InMemoryLogSink, InsertBatchError, LogItem, LogLevel, WriterClosedError

MakeWriter = Callable[..., BufferedLogWriter]


@pytest.mark.asyncio
async def test_async_writes_enqueue_without_flushing(make_writer: MakeWriter, sink: InMemoryLogSink) -> None:
    writer = make_writer(max_entries=10)

    await writer.write_log_async(LogItem(level=LogLevel.INFO, message="a"))
    await writer.write_info_async("c", "p", "ctx", "b")
    await writer.write_warning_async("c", "p", "ctx", "c")

    assert writer.pending_count == 3
    assert sink.insert_calls == 0


@pytest.mark.asyncio
async def test_async_threshold_flushes_in_worker(make_writer: MakeWriter, sink: InMemoryLogSink) -> None:
    writer = make_writer(max_entries=3)

    await asyncio.gather(*[writer.write_info_async("c", "p", "ctx", str(i)) for i in range(3)])

    assert sink.insert_calls == 1
    assert sorted(i.message for i in sink.snapshot()) == ["0", "1", "2"]
    assert writer.pending_count == 0


@pytest.mark.asyncio
async def test_async_error_variants(make_writer: MakeWriter, sink: InMemoryLogSink) -> None:
    writer = make_writer()
    try:
        raise ValueError("bad input")
    except ValueError as exc:
        await writer.write_error_async("c", "p", "ctx", "failed", exc)
        await writer.write_fatal_error_async("c", "p", "ctx", "failed hard", exc)
    writer.flush()

    error, fatal = sink.snapshot()
    assert error.level is LogLevel.ERROR
    assert fatal.level is LogLevel.FATAL_ERROR
    assert error.message == "failed - bad input"
    assert fatal.type == "ValueError"


@pytest.mark.asyncio
async def test_async_threshold_failure_propagates(make_writer: MakeWriter, sink: InMemoryLogSink) -> None:
    writer = make_writer(max_entries=1)
    sink.fail_next = ConnectionError("down")

    with pytest.raises(InsertBatchError):
        await writer.write_info_async("c", "p", "ctx", "lost")
    assert writer.pending_count == 0


@pytest.mark.asyncio
async def test_async_write_after_terminate_raises(make_writer: MakeWriter) -> None:
    writer = make_writer()
    writer.terminate()
    with pytest.raises(WriterClosedError):
        await writer.write_info_async("c", "p", "ctx", "late")
