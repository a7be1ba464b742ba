from __future__ import annotations

import threading

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from offlink.config import QueueConfig
from offlink.errors import QueueError, QueueWriteError
from offlink.queue import SqlQueueStore


class TestAppend:
    """Tests for append()."""

    def test_append_returns_increasing_keys(self, store: SqlQueueStore) -> None:
        k1 = store.append(b"one")
        k2 = store.append(b"two")

        assert isinstance(k1, int)
        assert k2 > k1

    def test_keys_are_not_reused_after_removal(self, store: SqlQueueStore) -> None:
        k1 = store.append(b"one")
        store.remove(k1)

        k2 = store.append(b"two")

        assert k2 > k1

    def test_append_failure_raises_queue_write_error(self, store: SqlQueueStore) -> None:
        with store.engine.begin() as conn:
            conn.exec_driver_sql(f"DROP TABLE {store.config.name}")

        with pytest.raises(QueueWriteError):
            store.append(b"lost?")


class TestEnumerate:
    """Tests for enumerate()."""

    def test_enumerate_is_oldest_first(self, store: SqlQueueStore) -> None:
        keys = [store.append(f"entry-{i}".encode()) for i in range(5)]

        entries = store.enumerate()

        assert [k for k, _ in entries] == keys
        assert [blob for _, blob in entries] == [f"entry-{i}".encode() for i in range(5)]

    def test_enumerate_empty_queue(self, store: SqlQueueStore) -> None:
        assert store.enumerate() == []
        assert len(store) == 0

    def test_contents_survive_reopen(self, db_url: str, queue_config: QueueConfig) -> None:
        first = create_engine(db_url)
        store = SqlQueueStore(first, queue_config)
        blobs = [f"mutation-{i}".encode() for i in range(4)]
        keys = [store.append(blob) for blob in blobs]
        first.dispose()

        second = create_engine(db_url)
        try:
            reopened = SqlQueueStore(second, queue_config)
            assert reopened.enumerate() == list(zip(keys, blobs))
        finally:
            second.dispose()

    def test_enumerate_failure_raises_queue_error(self, store: SqlQueueStore) -> None:
        with store.engine.begin() as conn:
            conn.exec_driver_sql(f"DROP TABLE {store.config.name}")

        with pytest.raises(QueueError) as excinfo:
            store.enumerate()

        assert not isinstance(excinfo.value, QueueWriteError)


class TestRemove:
    """Tests for remove() and contains()."""

    def test_remove_deletes_only_that_entry(self, store: SqlQueueStore) -> None:
        k1 = store.append(b"one")
        k2 = store.append(b"two")

        assert store.remove(k1) is True

        assert store.enumerate() == [(k2, b"two")]
        assert not store.contains(k1)
        assert store.contains(k2)

    def test_remove_missing_key_is_noop(self, store: SqlQueueStore) -> None:
        store.append(b"one")

        assert store.remove(9999) is False
        assert len(store) == 1


class TestConcurrency:
    """Concurrent callers on one store."""

    def test_concurrent_appends_and_removes(self, engine: Engine, queue_config: QueueConfig) -> None:
        store = SqlQueueStore(engine, queue_config)
        seeded = [store.append(f"seed-{i}".encode()) for i in range(20)]
        errors: list[BaseException] = []
        barrier = threading.Barrier(4)

        def appender(worker: int) -> None:
            try:
                barrier.wait()
                for i in range(10):
                    store.append(f"w{worker}-{i}".encode())
            except BaseException as exc:  # pragma: no cover
                errors.append(exc)

        def remover(keys: list[int]) -> None:
            try:
                barrier.wait()
                for key in keys:
                    store.remove(key)
            except BaseException as exc:  # pragma: no cover
                errors.append(exc)

        threads = [
            threading.Thread(target=appender, args=(0,)),
            threading.Thread(target=appender, args=(1,)),
            threading.Thread(target=remover, args=(seeded[:10],)),
            threading.Thread(target=remover, args=(seeded[10:],)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert errors == []
        entries = store.enumerate()
        assert len(entries) == 20
        assert all(not blob.startswith(b"seed-") for _, blob in entries)
        assert [k for k, _ in entries] == sorted(k for k, _ in entries)


def test_config_rejects_invalid_name() -> None:
    with pytest.raises(ValueError):
        QueueConfig(name="bad name; drop table")
