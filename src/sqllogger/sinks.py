"""Log sinks (storage backends)."""

from __future__ import annotations

import re
import threading
from collections.abc import Sequence
from contextlib import suppress
from dataclasses import dataclass
from datetime import timezone
from pathlib import Path
from typing import Any, Protocol

import duckdb

from .diagnostics import logger
from .models import LogItem

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

COLUMNS = ("DateTime", "Level", "Component", "Process", "Context", "Type", "Stack", "Msg")


class LogSinkError(RuntimeError):
    """Base class for sink failures."""


class SinkConnectionError(LogSinkError):
    """The backing database could not be opened."""


class SchemaCreationError(LogSinkError):
    """The log table was absent and could not be created."""


class InsertBatchError(LogSinkError):
    """A batch transaction failed; none of its rows were committed."""

    def __init__(self, message: str, *, batch_size: int) -> None:
        """Create an error for a failed batch of `batch_size` entries."""
        self.batch_size = batch_size
        super().__init__(message)


class LogSink(Protocol):
    """A synchronous sink for batches of log entries.

    Sinks are synchronous; the writer decides which thread runs them.
    """

    def ensure_schema(self) -> bool:
        """Provision the log table; return True when it had to be created."""

    def insert_batch(self, items: Sequence[LogItem]) -> int:
        """Persist all items in one transaction; return rows affected by the last insert."""

    def close(self) -> None:
        """Close any underlying resources."""


def validate_table_name(table: str) -> str:
    """Return `table` if it is a plain SQL identifier, else raise ValueError."""
    if not _IDENTIFIER.match(table or ""):
        raise ValueError(f"Invalid table name: {table!r}")
    return table


def _row(item: LogItem) -> list[Any]:
    """Map an entry onto the column order of `COLUMNS`."""
    ts = item.timestamp
    if ts.tzinfo is not None:
        # Stored as naive UTC in a TIMESTAMP column.
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return [
        ts,
        item.level.value,
        item.component,
        item.process,
        item.context,
        item.type,
        item.stack,
        item.message,
    ]


class InMemoryLogSink:
    """In-memory sink for tests and local debugging."""

    def __init__(self, *, table_exists: bool = True) -> None:
        """Create an empty in-memory sink.

        Args:
            table_exists: When False, the first `ensure_schema` reports that
                the table was created.
        """
        self._lock = threading.Lock()
        self._items: list[LogItem] = []
        self._table_exists = table_exists
        self.batches: list[list[LogItem]] = []
        self.insert_calls = 0
        self.schema_checks = 0
        self.closed = False
        self.fail_next: BaseException | None = None

    def ensure_schema(self) -> bool:
        """Report whether the (simulated) table had to be created."""
        with self._lock:
            self.schema_checks += 1
            created = not self._table_exists
            self._table_exists = True
            return created

    def insert_batch(self, items: Sequence[LogItem]) -> int:
        """Append a batch atomically, or raise the queued `fail_next` error."""
        if not items:
            return 0
        with self._lock:
            self.insert_calls += 1
            if self.fail_next is not None:
                exc, self.fail_next = self.fail_next, None
                logger.error("Log batch of %d entries failed: %s", len(items), exc)
                raise InsertBatchError(f"Insert of {len(items)} log entries failed: {exc}", batch_size=len(items)) from exc
            batch = list(items)
            self.batches.append(batch)
            self._items.extend(batch)
            return 1

    def close(self) -> None:  # noqa: D401 - keep interface consistent
        """Mark the sink closed."""
        self.closed = True

    def snapshot(self) -> Sequence[LogItem]:
        """Return a point-in-time copy of all persisted entries."""
        with self._lock:
            return list(self._items)


@dataclass(frozen=True)
class DuckDBOptions:
    path: Path | str
    table: str = "logs"


class DuckDBLogSink:
    """DuckDB sink for durable local persistence.

    One database handle is opened for the sink's lifetime; every schema check
    and every batch runs on its own cursor, which DuckDB backs with a separate
    connection to the same database.
    """

    def __init__(self, *, path: str | Path = ":memory:", table: str = "logs") -> None:
        """Open (or create) a DuckDB database at `path`."""
        self._opts = DuckDBOptions(path=path, table=validate_table_name(table))
        self._lock = threading.Lock()
        try:
            self._conn: duckdb.DuckDBPyConnection | None = duckdb.connect(str(self._opts.path))
        except duckdb.Error as exc:
            raise SinkConnectionError(f"Cannot open log database {self._opts.path!s}: {exc}") from exc

    @property
    def table(self) -> str:
        return self._opts.table

    def _cursor(self) -> duckdb.DuckDBPyConnection:
        """Acquire a per-operation connection onto the shared database."""
        with self._lock:
            if self._conn is None:
                raise SinkConnectionError("Log sink is closed")
            return self._conn.cursor()

    def ensure_schema(self) -> bool:
        """Create the log table if the existence probe fails."""
        table = self._opts.table
        cur = self._cursor()
        try:
            try:
                cur.execute(f'select 1 from "{table}" limit 1').fetchall()
                return False
            except duckdb.Error:
                pass

            create_sql = f"""
            create table if not exists "{table}" (
              "Id" bigint not null default nextval('{table}_id_seq') primary key,
              "DateTime" timestamp not null,
              "Level" varchar(16) not null,
              "Component" text,
              "Process" text,
              "Context" text,
              "Type" text,
              "Stack" text,
              "Msg" text
            )
            """
            try:
                cur.execute(f'create sequence if not exists "{table}_id_seq"')
                cur.execute(create_sql)
            except duckdb.Error as exc:
                raise SchemaCreationError(f"Cannot create log table {table}: {exc}") from exc
            logger.info("Created log table %s", table)
            return True
        finally:
            cur.close()

    def insert_batch(self, items: Sequence[LogItem]) -> int:
        """Insert the batch in order inside a single transaction."""
        if not items:
            return 0

        columns = ", ".join(f'"{c}"' for c in COLUMNS)
        placeholders = ", ".join("?" for _ in COLUMNS)
        insert_sql = f'insert into "{self._opts.table}" ({columns}) values ({placeholders})'

        try:
            cur = self._cursor()
        except LogSinkError as exc:
            logger.error("Log batch of %d entries dropped: %s", len(items), exc)
            raise InsertBatchError(str(exc), batch_size=len(items)) from exc

        result = 0
        try:
            cur.begin()
            for item in items:
                cur.execute(insert_sql, _row(item))
                row = cur.fetchone()
                result = int(row[0]) if row else 0
            cur.commit()
        except Exception as exc:
            with suppress(duckdb.Error):
                # Nothing to roll back when BEGIN itself failed.
                cur.rollback()
            logger.error("Log batch of %d entries failed: %s", len(items), exc)
            raise InsertBatchError(
                f"Insert of {len(items)} log entries failed: {exc}", batch_size=len(items)
            ) from exc
        finally:
            cur.close()
        return result

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
