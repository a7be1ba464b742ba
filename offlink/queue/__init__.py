from __future__ import annotations

from ..config import QueueConfig
from .base import QueueStore
from .redis_streams import RedisStreamStore
from .sql import SqlQueueStore

__all__ = [
    "QueueConfig",
    "QueueStore",
    "RedisStreamStore",
    "SqlQueueStore",
]
