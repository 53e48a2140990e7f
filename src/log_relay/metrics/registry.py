"""
Prometheus metrics for the relay pipeline.

Registered in the global REGISTRY on import; expose them with
``prometheus_client.start_http_server`` or the hosting web app.
"""

from prometheus_client import Counter, Gauge, Histogram


# --- Admission ---

EVENTS_ADMITTED_TOTAL = Counter(
    "log_relay_events_admitted_total",
    "Events offered to the dispatcher, by admission outcome",
    ["outcome"],  # accepted | rejected
)

QUEUE_DEPTH = Gauge(
    "log_relay_queue_depth",
    "Events waiting in the dispatcher queue",
)

# --- Delivery ---

DELIVERY_ATTEMPTS_TOTAL = Counter(
    "log_relay_delivery_attempts_total",
    "Single push attempts to the sink, by outcome",
    ["outcome"],  # ok | error
)

DELIVERIES_TOTAL = Counter(
    "log_relay_deliveries_total",
    "Completed deliver() calls, by final outcome",
    ["outcome"],  # delivered | exhausted
)

DELIVERY_LATENCY_MS = Histogram(
    "log_relay_delivery_latency_ms",
    "Latency of a single sink push in milliseconds",
    buckets=[1, 2.5, 5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000],
)

# --- Spool / replay ---

SPOOL_APPENDS_TOTAL = Counter(
    "log_relay_spool_appends_total",
    "Events appended to the failure spool",
)

EVENTS_LOST_TOTAL = Counter(
    "log_relay_events_lost_total",
    "Accepted events dropped because the failure spool could not be written",
)

REPLAY_RESULTS_TOTAL = Counter(
    "log_relay_replay_results_total",
    "Spool lines processed by replay, by result",
    ["result"],  # delivered | failed | poison | quarantined
)

SPOOL_POISON_LINES = Gauge(
    "log_relay_spool_poison_lines",
    "Unparseable lines found in the spool during the last replay",
)

# --- Sessions ---

SESSIONS_TOTAL = Counter(
    "log_relay_sessions_total",
    "Session flushes, by outcome",
    ["outcome"],  # forwarded | failed | empty
)

OPEN_SESSIONS = Gauge(
    "log_relay_open_sessions",
    "Producers with a non-empty session buffer",
)


class MetricsRegistry:
    """Centralized access to relay metrics."""

    events_admitted_total = EVENTS_ADMITTED_TOTAL
    queue_depth = QUEUE_DEPTH
    delivery_attempts_total = DELIVERY_ATTEMPTS_TOTAL
    deliveries_total = DELIVERIES_TOTAL
    delivery_latency_ms = DELIVERY_LATENCY_MS
    spool_appends_total = SPOOL_APPENDS_TOTAL
    events_lost_total = EVENTS_LOST_TOTAL
    replay_results_total = REPLAY_RESULTS_TOTAL
    spool_poison_lines = SPOOL_POISON_LINES
    sessions_total = SESSIONS_TOTAL
    open_sessions = OPEN_SESSIONS


# Singleton instance
metrics_registry = MetricsRegistry()
