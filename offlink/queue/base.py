from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, TypeVar

from ..errors import QueueError, QueueWriteError
from ..metrics import observe_queue_op, observe_queue_removal

T = TypeVar("T")


class QueueStore(ABC):
    """
    Abstract base for durable, key-ordered operation queues.

    Every public method runs under one internal lock, so append, enumerate
    and remove are atomic with respect to each other without any external
    synchronization. Keys are assigned by the backend and increase with
    insertion order.

    Backend failures surface as:
    - QueueWriteError from append(): the write was not persisted
    - QueueError from every other method
    """

    backend: str = "unknown"

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def append(self, blob: bytes) -> Any:
        """Persist a serialized operation and return its storage key."""
        return self._call("append", self._append, blob, error_cls=QueueWriteError)

    def enumerate(self) -> list[tuple[Any, bytes]]:
        """Return a snapshot of (key, blob) pairs, oldest first."""
        return self._call("enumerate", self._enumerate)

    def remove(self, key: Any) -> bool:
        """
        Delete the entry stored under ``key``.

        Removing a key that is no longer present is a no-op and returns False.
        """
        removed = self._call("remove", self._remove, key)
        if removed:
            observe_queue_removal(self.backend)
        return removed

    def contains(self, key: Any) -> bool:
        return self._call("contains", self._contains, key)

    def __len__(self) -> int:
        return self._call("count", self._count)

    def _call(
        self,
        op: str,
        fn: Callable[..., T],
        *args: Any,
        error_cls: type[QueueError] = QueueError,
    ) -> T:
        start = time.monotonic()
        status = "success"
        try:
            with self._lock:
                return fn(*args)
        except QueueError as exc:
            status = "error"
            if isinstance(exc, error_cls):
                raise
            raise error_cls(str(exc)) from exc
        except Exception as exc:
            status = "error"
            raise error_cls(f"{self.backend} queue {op} failed: {exc}") from exc
        finally:
            try:
                observe_queue_op(self.backend, op, status, time.monotonic() - start)
            except Exception:
                # metrics must never mask the real outcome
                pass

    @abstractmethod
    def _append(self, blob: bytes) -> Any:
        ...

    @abstractmethod
    def _enumerate(self) -> list[tuple[Any, bytes]]:
        ...

    @abstractmethod
    def _remove(self, key: Any) -> bool:
        ...

    @abstractmethod
    def _contains(self, key: Any) -> bool:
        ...

    @abstractmethod
    def _count(self) -> int:
        ...
