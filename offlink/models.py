from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from .errors import LinkError, TransportError


class OperationType(str, Enum):
    QUERY = "query"
    MUTATION = "mutation"
    SUBSCRIPTION = "subscription"


@dataclass(frozen=True)
class OperationDefinition:
    """
    A parsed operation definition.
    """
    kind: OperationType
    document: str
    name: Optional[str] = None


def _new_request_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True, eq=False)
class Operation:
    """
    An immutable request sent through the link chain.

    Two operations are equal iff their definitions and variables are equal.
    ``request_id``, ``replay_key`` and ``optimistic_response`` are carried
    along but never take part in matching.
    """
    definition: OperationDefinition
    variables: Mapping[str, Any] = field(default_factory=dict)
    optimistic_response: Optional[Mapping[str, Any]] = None
    request_id: str = field(default_factory=_new_request_id)
    # storage key of the queue entry this operation was replayed from
    replay_key: Any = None

    @property
    def identity(self) -> str:
        return json.dumps(
            {
                "kind": self.definition.kind.value,
                "name": self.definition.name,
                "document": self.definition.document,
                "variables": self.variables,
            },
            sort_keys=True,
            separators=(",", ":"),
            default=json_default,
        )

    @property
    def is_mutation(self) -> bool:
        return self.definition.kind == OperationType.MUTATION

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Operation):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self) -> int:
        return hash(self.identity)


def json_default(value: Any) -> Any:
    """JSON fallback shared by operation identity and queue serialization."""
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


@dataclass(frozen=True)
class OperationResponse:
    """
    A single response produced for an operation.
    """
    operation: Operation
    data: Optional[Mapping[str, Any]] = None
    errors: Optional[list[Any]] = None
    link_exception: Optional[LinkError] = None

    @property
    def has_transport_failure(self) -> bool:
        return isinstance(self.link_exception, TransportError)
