from __future__ import annotations

import logging
from typing import Any

from redis import Redis

from ..config import QueueConfig
from ..errors import QueueError
from .base import QueueStore

logger = logging.getLogger(__name__)

_DATA_FIELD = b"data"


class RedisStreamStore(QueueStore):
    """
    Durable queue stored in a Redis Stream.

    XADD assigns monotonically increasing entry ids, which serve as storage
    keys; XRANGE enumerates oldest first and XDEL removes single entries.
    Durability across restarts depends on the server's persistence settings
    (AOF or RDB).

    Each stream entry has exactly one field, ``data``, holding the serialized
    operation. Entries in any other shape are rejected.
    """

    backend = "redis"

    def __init__(self, redis: Redis, config: QueueConfig | None = None) -> None:
        super().__init__()
        self.redis = redis
        self.config = config or QueueConfig()

    @property
    def stream_key(self) -> str:
        return self.config.name

    def _append(self, blob: bytes) -> str:
        entry_id = self.redis.xadd(self.stream_key, {_DATA_FIELD: blob})
        key = _as_str(entry_id)
        logger.debug("Appended entry %s to stream %s", key, self.stream_key)
        return key

    def _enumerate(self) -> list[tuple[Any, bytes]]:
        entries = self.redis.xrange(self.stream_key, min="-", max="+")
        return [self._parse_entry(entry_id, fields) for entry_id, fields in entries]

    def _remove(self, key: Any) -> bool:
        removed = int(self.redis.xdel(self.stream_key, key)) > 0
        if removed:
            logger.debug("Removed entry %s from stream %s", key, self.stream_key)
        return removed

    def _contains(self, key: Any) -> bool:
        return bool(self.redis.xrange(self.stream_key, min=key, max=key, count=1))

    def _count(self) -> int:
        return int(self.redis.xlen(self.stream_key))

    def _parse_entry(self, entry_id: Any, fields: dict[Any, Any]) -> tuple[str, bytes]:
        normalized = {
            (k.encode() if isinstance(k, str) else k): v for k, v in fields.items()
        }
        if set(normalized) != {_DATA_FIELD}:
            raise QueueError(
                f"Invalid stream entry format for {_as_str(entry_id)}: "
                f"expected a single 'data' field, got {sorted(_as_str(k) for k in normalized)}"
            )
        value = normalized[_DATA_FIELD]
        if isinstance(value, str):
            value = value.encode("utf-8")
        return _as_str(entry_id), value


def _as_str(value: Any) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)
