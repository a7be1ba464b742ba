from prometheus_client import Counter, Histogram

OFFLINK_QUEUE_APPENDS_TOTAL = Counter(
    "offlink_queue_appends_total",
    "Operations appended to the durable queue",
    ["backend", "status"],
)

OFFLINK_QUEUE_REMOVALS_TOTAL = Counter(
    "offlink_queue_removals_total",
    "Entries removed from the durable queue",
    ["backend"],
)

OFFLINK_QUEUE_OP_LATENCY_SECONDS = Histogram(
    "offlink_queue_op_latency_seconds",
    "Latency of durable queue operations",
    ["backend", "op"],
)

OFFLINK_REPLAYED_TOTAL = Counter(
    "offlink_replayed_total",
    "Queued operations resubmitted after reconnecting",
)

OFFLINK_RECONCILED_TOTAL = Counter(
    "offlink_reconciled_total",
    "Mutation responses reconciled against the durable queue",
    ["outcome"],
)
