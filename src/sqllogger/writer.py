"""Buffered log writer: the public entry point.

Writes land in an in-memory buffer and are persisted in batches, either
synchronously when the buffer reaches `max_entries` or from a background timer.
Call `terminate()` (or use the writer as a context manager) to persist what is
still buffered; an `atexit` hook covers writers that are still alive at
interpreter shutdown.
"""

from __future__ import annotations

import asyncio
import atexit
import threading
import weakref
from collections.abc import Sequence
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from .buffer import LogBuffer
from .diagnostics import logger
from .models import LogItem, LogLevel, error_item, utc_now
from .scheduler import FlushScheduler
from .sinks import DuckDBLogSink, LogSink

if TYPE_CHECKING:
    from config import LoggerConfig


class WriterState(str, Enum):
    CONSTRUCTING = "constructing"
    ACTIVE = "active"
    TERMINATING = "terminating"
    TERMINATED = "terminated"


class WriterClosedError(RuntimeError):
    """Raised when writing to a writer that is not active."""


_live_writers: weakref.WeakSet[BufferedLogWriter] = weakref.WeakSet()


@atexit.register
def _terminate_live_writers() -> None:
    for writer in list(_live_writers):
        try:
            writer.terminate()
        except Exception:  # noqa: BLE001 - keep shutting the others down
            logger.exception("Final log flush failed at interpreter exit")


class BufferedLogWriter:
    """Thread-safe buffered writer in front of a `LogSink`.

    Members:
    - Sink: `sink` (schema provisioned during construction)
    - Buffer: `_buffer` (pending entries, insertion ordered)
    - Scheduler: `_scheduler` (timer-triggered flushes)
    - Flush lock: `_flush_lock` (one flush at a time, whatever triggered it)
    """

    def __init__(
        self,
        *,
        sink: LogSink,
        max_entries: int = 16,
        flush_interval_s: float = 30.0,
        min_flush_interval_s: float = 60.0,
        requeue_failed_batches: bool = False,
        owns_sink: bool = False,
    ) -> None:
        """Provision the sink schema, then start accepting writes.

        Args:
            sink: Storage backend receiving the batches.
            max_entries: Buffer size that triggers a flush on the writing thread.
            flush_interval_s: Scheduler tick period.
            min_flush_interval_s: Minimum time between timer-triggered flushes.
            requeue_failed_batches: Put a failed batch back in the buffer
                instead of dropping it.
            owns_sink: Close the sink when the writer terminates.
        """
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1. Got: {max_entries}")

        self.sink = sink
        self.max_entries = max_entries
        self.requeue_failed_batches = requeue_failed_batches
        self._owns_sink = owns_sink

        self._state = WriterState.CONSTRUCTING
        self._state_lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._buffer = LogBuffer()
        self._scheduler = FlushScheduler(
            flush=self.flush,
            pending=self._buffer.count,
            interval_s=flush_interval_s,
            min_flush_interval_s=min_flush_interval_s,
        )

        try:
            created = self.sink.ensure_schema()
            if created:
                self._buffer.add(
                    LogItem(
                        level=LogLevel.INFO,
                        component=type(self).__name__,
                        process="ensure_schema",
                        context=getattr(sink, "table", None),
                        message="Log table created",
                    )
                )
                self.flush()
        except BaseException:
            self._state = WriterState.TERMINATED
            if self._owns_sink:
                self.sink.close()
            raise

        self._state = WriterState.ACTIVE
        self._scheduler.start()
        _live_writers.add(self)

    @classmethod
    def from_config(cls, cfg: LoggerConfig) -> BufferedLogWriter:
        """Build a writer backed by a DuckDB sink described by `cfg`."""
        sink = DuckDBLogSink(path=cfg.database, table=cfg.table)
        return cls(
            sink=sink,
            max_entries=cfg.max_entries,
            flush_interval_s=cfg.flush_interval_s,
            min_flush_interval_s=cfg.min_flush_interval_s,
            requeue_failed_batches=cfg.requeue_failed_batches,
            owns_sink=True,
        )

    @property
    def state(self) -> WriterState:
        return self._state

    @property
    def pending_count(self) -> int:
        """Number of buffered entries (advisory)."""
        return self._buffer.count()

    def _enqueue(self, item: LogItem) -> int:
        """Add an entry while active; return the buffer size after the add."""
        # Held across the add so terminate() cannot drain between check and add.
        with self._state_lock:
            if self._state is not WriterState.ACTIVE:
                raise WriterClosedError(f"Log writer is {self._state.value}")
            return self._buffer.add(item)

    def write_log(self, item: LogItem) -> None:
        """Buffer an entry; flush on this thread once the buffer is full."""
        if self._enqueue(item) >= self.max_entries:
            self.flush()

    def write_info(
        self,
        component: str | None,
        process: str | None,
        context: str | None,
        message: str | None,
        timestamp: datetime | None = None,
    ) -> None:
        self.write_log(_plain_item(LogLevel.INFO, component, process, context, message, timestamp))

    def write_warning(
        self,
        component: str | None,
        process: str | None,
        context: str | None,
        message: str | None,
        timestamp: datetime | None = None,
    ) -> None:
        self.write_log(_plain_item(LogLevel.WARNING, component, process, context, message, timestamp))

    def write_error(
        self,
        component: str | None,
        process: str | None,
        context: str | None,
        message: str | None,
        exception: BaseException,
        timestamp: datetime | None = None,
    ) -> None:
        """Log `exception` with the stack and type of its root cause."""
        self.write_log(
            error_item(
                LogLevel.ERROR,
                component=component,
                process=process,
                context=context,
                message=message,
                exception=exception,
                timestamp=timestamp,
            )
        )

    def write_fatal_error(
        self,
        component: str | None,
        process: str | None,
        context: str | None,
        message: str | None,
        exception: BaseException,
        timestamp: datetime | None = None,
    ) -> None:
        """Like `write_error`, at `FatalError` level."""
        self.write_log(
            error_item(
                LogLevel.FATAL_ERROR,
                component=component,
                process=process,
                context=context,
                message=message,
                exception=exception,
                timestamp=timestamp,
            )
        )

    async def write_log_async(self, item: LogItem) -> None:
        """Buffer an entry without blocking the event loop.

        A size-triggered flush runs in a worker thread.
        """
        if self._enqueue(item) >= self.max_entries:
            await asyncio.to_thread(self.flush)

    async def write_info_async(
        self,
        component: str | None,
        process: str | None,
        context: str | None,
        message: str | None,
        timestamp: datetime | None = None,
    ) -> None:
        await self.write_log_async(_plain_item(LogLevel.INFO, component, process, context, message, timestamp))

    async def write_warning_async(
        self,
        component: str | None,
        process: str | None,
        context: str | None,
        message: str | None,
        timestamp: datetime | None = None,
    ) -> None:
        await self.write_log_async(_plain_item(LogLevel.WARNING, component, process, context, message, timestamp))

    async def write_error_async(
        self,
        component: str | None,
        process: str | None,
        context: str | None,
        message: str | None,
        exception: BaseException,
        timestamp: datetime | None = None,
    ) -> None:
        await self.write_log_async(
            error_item(
                LogLevel.ERROR,
                component=component,
                process=process,
                context=context,
                message=message,
                exception=exception,
                timestamp=timestamp,
            )
        )

    async def write_fatal_error_async(
        self,
        component: str | None,
        process: str | None,
        context: str | None,
        message: str | None,
        exception: BaseException,
        timestamp: datetime | None = None,
    ) -> None:
        await self.write_log_async(
            error_item(
                LogLevel.FATAL_ERROR,
                component=component,
                process=process,
                context=context,
                message=message,
                exception=exception,
                timestamp=timestamp,
            )
        )

    def flush(self) -> int:
        """Persist everything buffered so far as one batch.

        Returns what the sink reports for the batch (0 when nothing was
        buffered). Sink errors propagate; the batch is dropped unless
        `requeue_failed_batches` is set.
        """
        with self._flush_lock:
            batch = self._buffer.drain_all()
            if not batch:
                return 0
            try:
                return self.sink.insert_batch(batch)
            except Exception:
                self._handle_failed_batch(batch)
                raise
            finally:
                self._scheduler.mark_flushed()

    def _handle_failed_batch(self, batch: Sequence[LogItem]) -> None:
        if self.requeue_failed_batches and self._state is WriterState.ACTIVE:
            self._buffer.requeue(batch)
            logger.warning("Re-queued %d log entries after a failed flush", len(batch))
        else:
            logger.error("Dropped %d log entries after a failed flush", len(batch))

    def terminate(self) -> None:
        """Stop the scheduler and flush what is left. Only the first call has effect."""
        with self._state_lock:
            if self._state is not WriterState.ACTIVE:
                return
            self._state = WriterState.TERMINATING
        _live_writers.discard(self)

        try:
            self._scheduler.stop()
            self.flush()
        finally:
            self._state = WriterState.TERMINATED
            if self._owns_sink:
                self.sink.close()

    close = terminate

    def __enter__(self) -> BufferedLogWriter:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.terminate()

    def __del__(self) -> None:
        # Last resort only; terminate() or the context manager is the normal path.
        if getattr(self, "_state", None) is not WriterState.ACTIVE:
            return
        try:
            self.terminate()
        except Exception:  # noqa: BLE001 - finalizers must not raise
            logger.exception("Final log flush failed during finalization")


def _plain_item(
    level: LogLevel,
    component: str | None,
    process: str | None,
    context: str | None,
    message: str | None,
    timestamp: datetime | None,
) -> LogItem:
    return LogItem(
        level=level,
        timestamp=timestamp or utc_now(),
        component=component,
        process=process,
        context=context,
        message=message,
    )
