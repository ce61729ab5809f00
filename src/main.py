"""Demo entrypoint wiring the buffered log writer to a DuckDB file.

This module contains a small, end-to-end "smoke test" that:

- Loads configuration from environment.
- Starts a writer backed by DuckDB.
- Writes entries from several threads, including an error with a wrapped cause.
- Terminates the writer and reports how many rows the table holds.
"""

from __future__ import annotations

import threading

import duckdb

from config import LoggerConfig, load_config
from sqllogger import BufferedLogWriter
from sqllogger.diagnostics import configure_logging, logger, shutdown_logging


def _produce(writer: BufferedLogWriter, worker: int, entries: int) -> None:
    """Write `entries` info lines and one error from a single thread."""
    name = threading.current_thread().name
    for i in range(entries):
        writer.write_info("demo", name, f"worker-{worker}", f"entry {i}")
    try:
        try:
            raise KeyError(f"missing-{worker}")
        except KeyError as exc:
            raise RuntimeError("lookup failed") from exc
    except RuntimeError as exc:
        writer.write_error("demo", name, f"worker-{worker}", "handled failure", exc)


def run_demo(cfg: LoggerConfig, *, writers: int = 4, entries: int = 25) -> int:
    """Run the demo against `cfg` and return the number of rows in the log table."""
    configure_logging(cfg.diagnostics_level)

    with BufferedLogWriter.from_config(cfg) as writer:
        threads = [
            threading.Thread(target=_produce, args=(writer, n, entries), name=f"demo-writer-{n}")
            for n in range(writers)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        logger.info("Demo writers done; %d entries still buffered", writer.pending_count)

    conn = duckdb.connect(cfg.database)
    try:
        (rows,) = conn.execute(f'select count(*) from "{cfg.table}"').fetchone()
    finally:
        conn.close()
    return int(rows)


def main() -> None:
    """CLI entrypoint for running the demo with `python src/main.py`."""
    cfg = load_config().logger
    try:
        rows = run_demo(cfg)
    finally:
        shutdown_logging()
    print(f"{cfg.table} now holds {rows} rows")


if __name__ == "__main__":
    main()
