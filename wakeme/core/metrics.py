"""Application metrics."""

from prometheus_client import Counter, Gauge, Histogram

# Scheduler metrics
scheduler_job_duration = Histogram(
    "scheduler_job_duration_seconds",
    "Scheduled job execution time in seconds",
    ["job_type"],
)

scheduler_job_lag_seconds = Gauge(
    name="scheduler_job_lag_seconds",
    documentation="Scheduler heartbeat lag in seconds",
)

# Health check metrics
health_ready_checks_total = Counter(
    name="health_ready_checks_total",
    documentation="Total number of readiness checks",
    labelnames=["result", "reason"],
)

# Trip metrics
trips_started_total = Counter(
    "trips_started_total",
    "Total number of trips started",
    ["mode"],
)

alerts_triggered_total = Counter(
    "alerts_triggered_total",
    "Trips that crossed the alert threshold",
    ["mode"],
)

tracking_errors_total = Counter(
    "tracking_errors_total",
    "Per-trip failures inside a tracking cycle",
    ["mode"],
)

# Call metrics
call_attempts_total = Counter(
    "call_attempts_total",
    "Total number of wake-up call placements",
    ["result"],
)

wake_confirmations_total = Counter(
    "wake_confirmations_total",
    "Trips completed with the traveler confirmed awake",
    ["source"],
)

trips_missed_total = Counter(
    "trips_missed_total",
    "Trips escalated after the call budget ran out",
)

# Notification metrics
notifications_sent_total = Counter(
    name="notifications_sent_total",
    documentation="Notifications delivered",
    labelnames=["channel"],
)

notifications_failed_total = Counter(
    name="notifications_failed_total",
    documentation="Notification delivery errors",
    labelnames=["channel"],
)

# Inbound webhooks
inbound_events_total = Counter(
    name="inbound_events_total",
    documentation="Inbound events by provider/type",
    labelnames=["provider", "type"],
)
