from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import Any, Mapping, Optional

from offlink.errors import TransportError
from offlink.models import Operation, OperationDefinition, OperationResponse, OperationType

ADD_TODO = OperationDefinition(
    kind=OperationType.MUTATION,
    name="AddTodo",
    document="mutation AddTodo($title: String!) { addTodo(title: $title) { id title } }",
)

LIST_TODOS = OperationDefinition(
    kind=OperationType.QUERY,
    name="ListTodos",
    document="query ListTodos { todos { id title } }",
)


def make_mutation(
    title: str = "milk",
    optimistic: Optional[Mapping[str, Any]] = None,
) -> Operation:
    return Operation(
        definition=ADD_TODO,
        variables={"title": title},
        optimistic_response=optimistic,
    )


def make_query() -> Operation:
    return Operation(definition=LIST_TODOS)


class RecordingCache:
    """Cache double recording optimistic writes."""

    def __init__(self, fail_with: Optional[Exception] = None) -> None:
        self.writes: list[tuple[Operation, Mapping[str, Any]]] = []
        self.fail_with = fail_with

    def write_optimistic(self, operation: Operation, payload: Mapping[str, Any]) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.writes.append((operation, payload))


class FakeTransport:
    """
    Terminating transport double.

    Every request is recorded. A response is produced per request unless the
    operation's title is listed in ``fail_titles`` (transport failure). When
    ``hold`` is set, each request waits for ``release(title)`` before answering.
    """

    def __init__(self, *, hold: bool = False, fail_titles: tuple[str, ...] = ()) -> None:
        self.requests: list[Operation] = []
        self.hold = hold
        self.fail_titles = set(fail_titles)
        self._gates: dict[str, asyncio.Event] = {}

    def _gate(self, title: str) -> asyncio.Event:
        return self._gates.setdefault(title, asyncio.Event())

    def release(self, title: str) -> None:
        self._gate(title).set()

    async def request(self, operation: Operation) -> AsyncIterator[OperationResponse]:
        self.requests.append(operation)
        title = operation.variables.get("title", "")
        if self.hold:
            await self._gate(title).wait()
        if title in self.fail_titles:
            yield OperationResponse(
                operation=operation,
                link_exception=TransportError("connection refused"),
            )
            return
        yield OperationResponse(operation=operation, data={"ok": title or True})


def forward_to(transport: FakeTransport) -> Callable[[Operation], AsyncIterator[OperationResponse]]:
    return transport.request


async def settle(rounds: int = 5) -> None:
    """Let scheduled tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)
