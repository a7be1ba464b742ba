from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Mapping, Optional, Protocol

from .errors import TransportError
from .models import Operation, OperationResponse

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """
    Protocol for the terminating stage that talks to the remote service.
    """

    def request(self, operation: Operation) -> AsyncIterator[OperationResponse]:
        """Send ``operation`` and yield zero or more responses."""
        ...


Execute = Callable[[Operation], Awaitable[Optional[Mapping[str, Any]]]]


class FunctionTransport:
    """
    Terminating transport around an ``async execute(operation) -> data`` callable.

    Connection-level failures (OSError, TimeoutError) become one response
    carrying a TransportError. Any other exception propagates to the caller.
    """

    def __init__(self, execute: Execute) -> None:
        self.execute = execute

    async def request(self, operation: Operation) -> AsyncIterator[OperationResponse]:
        try:
            result = await self.execute(operation)
        except (OSError, TimeoutError) as exc:
            logger.info("Transport failure for %s: %s", operation.request_id, exc)
            error = TransportError(str(exc))
            error.__cause__ = exc
            yield OperationResponse(operation=operation, link_exception=error)
            return

        yield OperationResponse(operation=operation, data=result)
