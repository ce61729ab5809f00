from __future__ import annotations

import threading

from sqllogger import LogBuffer, LogItem, LogLevel


def _item(msg: str) -> LogItem:
    return LogItem(level=LogLevel.INFO, message=msg)


def test_add_returns_size_and_preserves_order():
    buf = LogBuffer()
    assert buf.add(_item("a")) == 1
    assert buf.add(_item("b")) == 2
    assert buf.count() == 2
    assert len(buf) == 2

    drained = buf.drain_all()
    assert [i.message for i in drained] == ["a", "b"]
    assert buf.count() == 0


def test_drain_all_on_empty_buffer_returns_empty_list():
    buf = LogBuffer()
    assert buf.drain_all() == []
    assert buf.drain_all() == []
    assert buf.count() == 0


def test_drained_snapshot_is_independent_of_live_buffer():
    buf = LogBuffer()
    buf.add(_item("a"))
    drained = buf.drain_all()
    buf.add(_item("b"))
    assert [i.message for i in drained] == ["a"]
    assert [i.message for i in buf.drain_all()] == ["b"]


def test_requeue_puts_batch_before_newer_entries():
    buf = LogBuffer()
    buf.add(_item("a"))
    buf.add(_item("b"))
    failed = buf.drain_all()
    buf.add(_item("c"))

    buf.requeue(failed)
    assert [i.message for i in buf.drain_all()] == ["a", "b", "c"]


def test_requeue_empty_batch_is_noop():
    buf = LogBuffer()
    buf.add(_item("a"))
    buf.requeue([])
    assert buf.count() == 1


def test_concurrent_adds_and_drains_lose_nothing():
    buf = LogBuffer()
    drained: list[LogItem] = []
    stop = threading.Event()

    def producer(n: int) -> None:
        for i in range(500):
            buf.add(_item(f"{n}-{i}"))

    def consumer() -> None:
        while not stop.is_set():
            drained.extend(buf.drain_all())

    drain_thread = threading.Thread(target=consumer)
    drain_thread.start()
    producers = [threading.Thread(target=producer, args=(n,)) for n in range(8)]
    for t in producers:
        t.start()
    for t in producers:
        t.join()
    stop.set()
    drain_thread.join()
    drained.extend(buf.drain_all())

    messages = [i.message for i in drained]
    assert len(messages) == 8 * 500
    assert len(set(messages)) == 8 * 500
