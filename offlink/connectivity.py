from __future__ import annotations

import dataclasses
import logging
import threading
from collections.abc import Callable

from .errors import SerializationError
from .metrics import observe_replay
from .models import Operation
from .queue.base import QueueStore
from .serializer import OperationSerializer

logger = logging.getLogger(__name__)


class ConnectivityGate:
    """
    Two-state connectivity machine (Offline, Online) that owns the replay trigger.

    Starts Offline. Only the Offline -> Online transition has a side effect:
    every entry in the current queue snapshot is deserialized and handed to
    ``submit`` as a fresh operation. Same-state calls are no-ops.

    ``submit`` is expected to schedule work and return immediately, so all
    replayed operations run concurrently. There is deliberately no ordering,
    batching or concurrency cap between them.

    A call made while a replay pass is running (for example from inside
    ``submit``) never starts a second, nested pass. Going offline takes effect
    at once, so the rest of the pass is intercepted as offline. Coming back
    online during the pass schedules one more pass over the queue, run after
    the current one finishes.
    """

    def __init__(
        self,
        store: QueueStore,
        serializer: OperationSerializer,
        submit: Callable[[Operation], object] | None = None,
    ) -> None:
        self.store = store
        self.serializer = serializer
        self.submit = submit
        self._connected = False
        self._transitioning = False
        self._replay_requested = False
        self._lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self._connected

    def is_connected(self) -> bool:
        return self._connected

    def set_connected(self, connected: bool) -> int:
        """
        Update connectivity and return the number of operations resubmitted.

        Raises:
            RuntimeError: If going online with queued entries and no submit
                          callback was configured
            QueueError: If the queue cannot be enumerated
        """
        connected = bool(connected)
        with self._lock:
            if connected == self._connected:
                return 0
            self._connected = connected
            if not connected:
                logger.info("Connectivity lost; mutations will be queued")
                return 0
            if self._transitioning:
                logger.info("Connectivity restored during a replay pass; another pass will follow")
                self._replay_requested = True
                return 0
            self._transitioning = True

        replayed = 0
        try:
            while True:
                replayed += self._replay()
                with self._lock:
                    again = self._replay_requested and self._connected
                    self._replay_requested = False
                    if not again:
                        self._transitioning = False
                        return replayed
        except BaseException:
            with self._lock:
                self._transitioning = False
                self._replay_requested = False
            raise

    def _replay(self) -> int:
        snapshot = self.store.enumerate()
        logger.info("Connectivity restored; replaying %d queued operation(s)", len(snapshot))
        if snapshot and self.submit is None:
            raise RuntimeError("ConnectivityGate has no submit callback to replay into")

        replayed = 0
        for key, blob in snapshot:
            if not self._connected:
                logger.info("Connectivity lost mid-replay; remaining entries wait for the next pass")
                break
            try:
                operation = self.serializer.deserialize(blob)
            except SerializationError as exc:
                # left in place; the entry stays a visible liability
                logger.warning("Skipping undecodable queue entry %s: %s", key, exc)
                continue
            self.submit(dataclasses.replace(operation, replay_key=key))
            replayed += 1

        observe_replay(replayed)
        return replayed
