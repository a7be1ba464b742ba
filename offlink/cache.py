from __future__ import annotations

import threading
from typing import Any, Mapping, Optional, Protocol

from .models import Operation


class Cache(Protocol):
    """
    Protocol for the shared cache that receives provisional results.
    """

    def write_optimistic(self, operation: Operation, payload: Mapping[str, Any]) -> None:
        """Write ``payload`` as an optimistic layer tagged to ``operation``."""
        ...


class OptimisticCacheWriter:
    """
    Applies provisional results for queued operations.

    No retries and no validation: cache failures propagate unchanged.
    """

    def __init__(self, cache: Cache) -> None:
        self.cache = cache

    def write(self, operation: Operation, payload: Mapping[str, Any]) -> None:
        self.cache.write_optimistic(operation, payload)


class MemoryCache:
    """
    In-process cache holding one optimistic layer per operation identity.

    A later write for an equal operation replaces its layer. Normalization of
    the payload into entities is left to a real cache implementation.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._layers: dict[str, Mapping[str, Any]] = {}

    def write_optimistic(self, operation: Operation, payload: Mapping[str, Any]) -> None:
        with self._lock:
            self._layers[operation.identity] = payload

    def optimistic_layer(self, operation: Operation) -> Optional[Mapping[str, Any]]:
        with self._lock:
            return self._layers.get(operation.identity)

    def remove_optimistic(self, operation: Operation) -> bool:
        """Drop the layer for ``operation``, e.g. once a server result supersedes it."""
        with self._lock:
            return self._layers.pop(operation.identity, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._layers)
