from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Optional

from .cache import Cache, OptimisticCacheWriter
from .connectivity import ConnectivityGate
from .errors import QueueError, SerializationError
from .metrics import observe_reconciliation
from .models import Operation, OperationResponse
from .queue.base import QueueStore
from .serializer import OperationSerializer

logger = logging.getLogger(__name__)

NextLink = Callable[[Operation], AsyncIterator[OperationResponse]]

_END = object()


@dataclass(frozen=True)
class _Raise:
    exc: BaseException


class ResponseSink:
    """
    Output side of one response stream, handed to the exception hook.

    - emit(): deliver a response downstream
    - complete(): end the stream once already emitted responses are delivered
    - cancel(): end the stream now, dropping anything not yet delivered

    Once the hook has been given the sink, the stream stays open until the
    hook calls complete() or cancel(), even after the upstream has ended.
    Emitting later, from a callback or timer, is fine.

    The sink gives no access to the queue or the cache.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._state = "open"
        self._held = False

    @property
    def closed(self) -> bool:
        return self._state != "open"

    def emit(self, response: OperationResponse) -> None:
        if self.closed:
            raise RuntimeError(f"Cannot emit on a {self._state} response sink")
        self._queue.put_nowait(response)

    def complete(self) -> None:
        if not self.closed:
            self._state = "completed"
            self._queue.put_nowait(_END)

    def cancel(self) -> None:
        if self._state == "cancelled":
            return
        self._state = "cancelled"
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_END)

    def _fail(self, exc: BaseException) -> None:
        if not self.closed:
            self._state = "failed"
            self._queue.put_nowait(_Raise(exc))

    def _upstream_done(self) -> None:
        if not self._held:
            self.complete()

    async def _responses(self) -> AsyncIterator[OperationResponse]:
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            if isinstance(item, _Raise):
                raise item.exc
            yield item


ExceptionHook = Callable[[OperationResponse, ResponseSink], None]


async def never_stream() -> AsyncIterator[OperationResponse]:
    """A response stream that neither emits nor completes."""
    await asyncio.get_running_loop().create_future()
    yield  # pragma: no cover


class OfflineMutationLink:
    """
    Queues mutations while offline and reconciles their responses.

    Requests:
    - non-mutations are forwarded untouched
    - mutations are forwarded while the gate is online
    - mutations issued while offline are appended to the durable queue, get
      their optimistic result written to the cache, and receive a stream that
      never emits; the real outcome arrives through a later resubmission

    Responses:
    - non-mutation responses pass through
    - a mutation response with a transport failure goes to ``exception_hook``
      when one is configured, and nothing else happens for it; the hook then
      owns the stream and must eventually complete() or cancel() the sink
    - any other mutation response is forwarded, then the first queue entry
      equal to its operation is removed; a queue failure at this point is
      logged and leaves the entry queued, the response is still delivered

    Known limitations:
    1. If the process stops after a mutation was sent but before its response
       was reconciled, it is replayed again on the next reconnect; once its
       entry is removed it is assumed to have completed.
    2. Replay resubmits every queued mutation at once, in parallel.
    3. A failure response without a hook still removes the entry.

    This link must sit directly in front of the terminating transport.

    Queue calls are synchronous and run on the event loop thread, so the
    store is expected to be local and fast (a SQLite file or a nearby Redis).
    """

    def __init__(
        self,
        store: QueueStore,
        serializer: OperationSerializer,
        cache: Cache,
        gate: ConnectivityGate,
        exception_hook: Optional[ExceptionHook] = None,
    ) -> None:
        self.store = store
        self.serializer = serializer
        self.cache_writer = OptimisticCacheWriter(cache)
        self.gate = gate
        self.exception_hook = exception_hook

    def request(
        self,
        operation: Operation,
        forward: NextLink,
    ) -> AsyncIterator[OperationResponse]:
        """
        Route ``operation`` and return its response stream.

        Queueing happens before this returns.

        Raises:
            QueueWriteError: If an offline mutation cannot be persisted
            SerializationError: If an offline mutation cannot be encoded
        """
        if not operation.is_mutation:
            return forward(operation)
        return self._reconcile(self._intercept(operation, forward))

    def _intercept(
        self,
        operation: Operation,
        forward: NextLink,
    ) -> AsyncIterator[OperationResponse]:
        if self.gate.is_connected():
            return forward(operation)

        if operation.replay_key is not None and self.store.contains(operation.replay_key):
            logger.debug(
                "Replayed operation %s went offline again; entry %s stays queued",
                operation.request_id,
                operation.replay_key,
            )
            return never_stream()

        key = self.store.append(self.serializer.serialize(operation))
        logger.debug("Queued offline mutation %s as entry %s", operation.request_id, key)

        if operation.optimistic_response is not None:
            self.cache_writer.write(operation, operation.optimistic_response)

        return never_stream()

    async def _reconcile(
        self,
        upstream: AsyncIterator[OperationResponse],
    ) -> AsyncIterator[OperationResponse]:
        sink = ResponseSink()
        feeder = asyncio.get_running_loop().create_task(self._feed(upstream, sink))
        try:
            async for response in sink._responses():
                yield response
        finally:
            if not feeder.done():
                feeder.cancel()
            await asyncio.gather(feeder, return_exceptions=True)

    async def _feed(
        self,
        upstream: AsyncIterator[OperationResponse],
        sink: ResponseSink,
    ) -> None:
        try:
            async for response in upstream:
                self._handle_response(response, sink)
                if sink.closed:
                    break
        except Exception as exc:
            sink._fail(exc)
        else:
            sink._upstream_done()
        finally:
            aclose = getattr(upstream, "aclose", None)
            if aclose is not None:
                await aclose()

    def _handle_response(self, response: OperationResponse, sink: ResponseSink) -> None:
        if not response.operation.is_mutation:
            sink.emit(response)
            return

        if response.has_transport_failure and self.exception_hook is not None:
            observe_reconciliation("hooked")
            sink._held = True
            self.exception_hook(response, sink)
            return

        if not sink.closed:
            sink.emit(response)
        try:
            removed = self._remove_matching(response.operation)
        except QueueError:
            # the entry stays queued and is replayed on the next reconnect
            logger.exception(
                "Could not reconcile %s against the queue", response.operation.request_id
            )
            observe_reconciliation("failed")
            return
        observe_reconciliation("removed" if removed else "unmatched")

    def _remove_matching(self, operation: Operation) -> bool:
        for key, blob in self.store.enumerate():
            try:
                queued = self.serializer.deserialize(blob)
            except SerializationError as exc:
                logger.warning("Skipping undecodable queue entry %s: %s", key, exc)
                continue
            if queued == operation:
                removed = self.store.remove(key)
                logger.debug("Reconciled %s against entry %s", operation.request_id, key)
                return removed
        return False
