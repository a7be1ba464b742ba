from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Optional

from .cache import Cache
from .connectivity import ConnectivityGate
from .link import ExceptionHook, OfflineMutationLink
from .models import Operation, OperationResponse
from .queue.base import QueueStore
from .serializer import OperationSerializer
from .transport import Transport

logger = logging.getLogger(__name__)

_DONE = object()


@dataclass(frozen=True)
class _Failure:
    exc: BaseException


class OfflineClient:
    """
    Submission entry point in front of an OfflineMutationLink.

    Every submission starts a new execution task. Responses are routed by
    ``request_id`` to whoever called ``request()`` for that id, so a caller
    whose mutation was queued while offline receives the outcome of the
    resubmission made after reconnecting.

    A new submission for a ``request_id`` cancels the execution still running
    for it (typically the never-ending stream of a queued mutation).

    ``submit`` and ``request`` must be called from the event loop thread.

    Usage:
        client = build_client(store, MemoryCache(), transport)
        async for response in client.request(operation):
            ...
        client.gate.set_connected(True)
    """

    def __init__(self, link: OfflineMutationLink, transport: Transport) -> None:
        self.link = link
        self.transport = transport
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._executions: dict[str, asyncio.Task] = {}
        self._tasks: set[asyncio.Task] = set()

    @property
    def gate(self) -> ConnectivityGate:
        return self.link.gate

    def request(self, operation: Operation) -> AsyncIterator[OperationResponse]:
        """
        Submit ``operation`` and return the stream of its responses.

        The stream ends when an execution for this request completes.

        Raises:
            QueueWriteError: If the operation had to be queued and could not be persisted
        """
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers[operation.request_id].add(queue)
        try:
            self.submit(operation)
        except BaseException:
            self._unsubscribe(operation.request_id, queue)
            raise
        return self._listen(operation.request_id, queue)

    def submit(self, operation: Operation) -> asyncio.Task:
        """
        Start processing ``operation`` and return its execution task.

        Used for original calls and for operations replayed by the gate.
        """
        stream = self.link.request(operation, self.transport.request)

        previous = self._executions.get(operation.request_id)
        if previous is not None and not previous.done():
            previous.cancel()

        task = asyncio.get_running_loop().create_task(
            self._pump(operation.request_id, stream)
        )
        self._executions[operation.request_id] = task
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    @property
    def in_flight(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    async def aclose(self) -> None:
        """Cancel every running execution and wait for them to finish."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _pump(self, request_id: str, stream: AsyncIterator[OperationResponse]) -> None:
        try:
            async for response in stream:
                self._publish(request_id, response)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if not self._publish(request_id, _Failure(exc)):
                logger.error("Execution of %s failed with no listener", request_id, exc_info=exc)
            raise
        self._publish(request_id, _DONE)

    def _publish(self, request_id: str, item: object) -> int:
        queues = list(self._subscribers.get(request_id, ()))
        for queue in queues:
            queue.put_nowait(item)
        return len(queues)

    async def _listen(
        self,
        request_id: str,
        queue: asyncio.Queue,
    ) -> AsyncIterator[OperationResponse]:
        try:
            while True:
                item = await queue.get()
                if item is _DONE:
                    return
                if isinstance(item, _Failure):
                    raise item.exc
                yield item
        finally:
            self._unsubscribe(request_id, queue)

    def _unsubscribe(self, request_id: str, queue: asyncio.Queue) -> None:
        subscribers = self._subscribers.get(request_id)
        if subscribers is None:
            return
        subscribers.discard(queue)
        if not subscribers:
            del self._subscribers[request_id]

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled():
            # delivered to listeners or logged in _pump
            task.exception()
        for request_id, running in list(self._executions.items()):
            if running is task:
                del self._executions[request_id]


def build_client(
    store: QueueStore,
    cache: Cache,
    transport: Transport,
    *,
    exception_hook: Optional[ExceptionHook] = None,
    serializer: Optional[OperationSerializer] = None,
) -> OfflineClient:
    """
    Wire queue, gate, link and client together.

    The gate replays into ``client.submit``; it starts Offline.
    """
    serializer = serializer or OperationSerializer()
    gate = ConnectivityGate(store, serializer)
    link = OfflineMutationLink(
        store,
        serializer,
        cache,
        gate,
        exception_hook=exception_hook,
    )
    client = OfflineClient(link, transport)
    gate.submit = client.submit
    return client
