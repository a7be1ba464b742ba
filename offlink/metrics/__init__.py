from __future__ import annotations

from .registry import (
    OFFLINK_QUEUE_APPENDS_TOTAL,
    OFFLINK_QUEUE_OP_LATENCY_SECONDS,
    OFFLINK_QUEUE_REMOVALS_TOTAL,
    OFFLINK_RECONCILED_TOTAL,
    OFFLINK_REPLAYED_TOTAL,
)


def observe_queue_op(backend: str, op: str, status: str, latency_s: float) -> None:
    OFFLINK_QUEUE_OP_LATENCY_SECONDS.labels(backend=backend, op=op).observe(latency_s)
    if op == "append":
        OFFLINK_QUEUE_APPENDS_TOTAL.labels(backend=backend, status=status).inc()


def observe_queue_removal(backend: str) -> None:
    OFFLINK_QUEUE_REMOVALS_TOTAL.labels(backend=backend).inc()


def observe_replay(count: int) -> None:
    OFFLINK_REPLAYED_TOTAL.inc(count)


def observe_reconciliation(outcome: str) -> None:
    OFFLINK_RECONCILED_TOTAL.labels(outcome=outcome).inc()


__all__ = [
    "observe_queue_op",
    "observe_queue_removal",
    "observe_replay",
    "observe_reconciliation",
]
