from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import (
    Column,
    Integer,
    LargeBinary,
    MetaData,
    Table,
    delete,
    func,
    insert,
    select,
)
from sqlalchemy.engine import Engine

from ..config import QueueConfig
from ..errors import QueueError
from .base import QueueStore

logger = logging.getLogger(__name__)


class SqlQueueStore(QueueStore):
    """
    Durable queue stored in a SQL table.

    The autoincrement primary key is the storage key, so enumeration by key
    is insertion order. Each call runs in its own short transaction; the
    table survives process restarts as long as the database does.

    Usage:
        engine = create_engine("sqlite:///offline.db")
        store = SqlQueueStore(engine, QueueConfig(name="offline_mutations"))
        key = store.append(blob)
        for key, blob in store.enumerate():
            ...
        store.remove(key)
    """

    backend = "sql"

    def __init__(self, engine: Engine, config: QueueConfig | None = None) -> None:
        super().__init__()
        self.engine = engine
        self.config = config or QueueConfig()
        self._metadata = MetaData()
        self.table = Table(
            self.config.name,
            self._metadata,
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("payload", LargeBinary, nullable=False),
            sqlite_autoincrement=True,
        )
        try:
            self._metadata.create_all(self.engine)
        except Exception as exc:
            raise QueueError(f"Cannot create queue table {self.config.name!r}: {exc}") from exc

    def _append(self, blob: bytes) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(insert(self.table).values(payload=blob))
            key = result.inserted_primary_key[0]
        logger.debug("Appended entry %s to %s", key, self.config.name)
        return int(key)

    def _enumerate(self) -> list[tuple[Any, bytes]]:
        stmt = select(self.table.c.id, self.table.c.payload).order_by(self.table.c.id)
        with self.engine.connect() as conn:
            return [(int(row.id), bytes(row.payload)) for row in conn.execute(stmt)]

    def _remove(self, key: Any) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(delete(self.table).where(self.table.c.id == key))
        removed = result.rowcount > 0
        if removed:
            logger.debug("Removed entry %s from %s", key, self.config.name)
        return removed

    def _contains(self, key: Any) -> bool:
        stmt = select(self.table.c.id).where(self.table.c.id == key)
        with self.engine.connect() as conn:
            return conn.execute(stmt).first() is not None

    def _count(self) -> int:
        stmt = select(func.count()).select_from(self.table)
        with self.engine.connect() as conn:
            return int(conn.execute(stmt).scalar_one())
