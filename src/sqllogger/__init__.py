"""Buffered SQL log writer.

This package provides:
- Structured log entries (`LogItem`) buffered in memory.
- Batched persistence to a relational sink (DuckDB by default), one transaction per flush.
- Flushes triggered by buffer size, by a background timer and by termination.
"""

from .buffer import LogBuffer
from .models import LogItem, LogLevel
from .scheduler import FlushScheduler
from .sinks import (
    DuckDBLogSink,
    InMemoryLogSink,
    InsertBatchError,
    LogSink,
    LogSinkError,
    SchemaCreationError,
    SinkConnectionError,
)
from .writer import BufferedLogWriter, WriterClosedError, WriterState

__all__ = [
    "BufferedLogWriter",
    "DuckDBLogSink",
    "FlushScheduler",
    "InMemoryLogSink",
    "InsertBatchError",
    "LogBuffer",
    "LogItem",
    "LogLevel",
    "LogSink",
    "LogSinkError",
    "SchemaCreationError",
    "SinkConnectionError",
    "WriterClosedError",
    "WriterState",
]
