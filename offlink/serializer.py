from __future__ import annotations

import json
from typing import Any

from .errors import SerializationError
from .models import Operation, OperationDefinition, OperationType, json_default


class OperationSerializer:
    """
    JSON codec for queued operations.

    ``replay_key`` is transient and never written; everything that takes part
    in an operation's identity must survive a round trip unchanged.
    """

    encoding = "utf-8"

    def serialize(self, operation: Operation) -> bytes:
        definition = operation.definition
        doc = {
            "definition": {
                "kind": definition.kind.value,
                "document": definition.document,
                "name": definition.name,
            },
            "variables": dict(operation.variables),
            "optimistic_response": (
                dict(operation.optimistic_response)
                if operation.optimistic_response is not None
                else None
            ),
            "request_id": operation.request_id,
        }
        try:
            return json.dumps(doc, sort_keys=True, default=json_default).encode(self.encoding)
        except (TypeError, ValueError) as exc:
            raise SerializationError(f"Cannot serialize operation: {exc}") from exc

    def deserialize(self, blob: bytes | str) -> Operation:
        try:
            if isinstance(blob, bytes):
                blob = blob.decode(self.encoding)
            doc: dict[str, Any] = json.loads(blob)
            definition = doc["definition"]
            return Operation(
                definition=OperationDefinition(
                    kind=OperationType(definition["kind"]),
                    document=definition["document"],
                    name=definition.get("name"),
                ),
                variables=doc.get("variables") or {},
                optimistic_response=doc.get("optimistic_response"),
                request_id=doc["request_id"],
            )
        except (UnicodeDecodeError, ValueError, KeyError, TypeError) as exc:
            raise SerializationError(f"Cannot deserialize operation: {exc}") from exc
