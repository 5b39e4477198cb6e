"""
Prometheus metrics for record sinks.

Registered in the global prometheus_client REGISTRY on import; expose them
with prometheus_client.start_http_server or any ASGI/WSGI exporter.
"""

from prometheus_client import Counter, Histogram

SINK_RECORDS_TOTAL = Counter(
    "record_sink_records_total",
    "Records presented to the sink",
    ["instance", "outcome"],
)

SINK_BYTES_TOTAL = Counter(
    "record_sink_bytes_total",
    "Encoded record bytes appended to output files",
    ["instance"],
)

SINK_SYNCS_TOTAL = Counter(
    "record_sink_syncs_total",
    "Force-durable calls issued on open output files",
    ["instance"],
)

SINK_ROTATIONS_TOTAL = Counter(
    "record_sink_rotations_total",
    "Output files finalized by rotation",
    ["instance"],
)

SINK_APPEND_SECONDS = Histogram(
    "record_sink_append_seconds",
    "Time spent in on_record, including sync and rotation",
    ["instance"],
    buckets=[0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5],
)
