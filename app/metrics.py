from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path", "status"],
)

JOB_DURATION = Histogram(
    "job_duration_seconds",
    "Background job duration",
    ["task", "status"],
)

ACS_TICK_DURATION = Histogram(
    "acs_monitor_tick_duration_seconds",
    "Duration of one parameter monitoring tick",
    ["config_id"],
)
ACS_DEVICE_POLLS = Counter(
    "acs_device_polls_total",
    "Per-device parameter polls",
    ["status"],
)
ACS_SYNC_DEVICES = Counter(
    "acs_sync_devices_total",
    "Remote devices processed by reconciliation",
    ["result"],
)
ACS_ALERTS_CREATED = Counter(
    "acs_threshold_alerts_created_total",
    "Threshold alerts created",
    ["severity"],
)


def observe_job(task_name: str, status: str, duration: float) -> None:
    JOB_DURATION.labels(task=task_name, status=status).observe(duration)
