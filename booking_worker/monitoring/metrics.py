from prometheus_client import Counter, Gauge, Histogram, Info, start_http_server

SERVICE_NAME = "booking-worker"

# Business metrics
reservations_expired_total = Counter(
    "powerbank_worker_reservations_expired_total",
    "Reservations flipped to expired by the sweep",
    ["service"],
)

inventory_rows_corrected_total = Counter(
    "powerbank_worker_inventory_rows_corrected_total",
    "Inventory rows corrected by scheduled reconciliation",
    ["service"],
)

inventory_rows_failed = Gauge(
    "powerbank_worker_inventory_rows_failed_last_sync",
    "Inventory rows that could not be corrected in the last reconciliation",
    ["service"],
)

job_duration = Histogram(
    "powerbank_worker_job_duration_seconds",
    "Duration of scheduled jobs",
    ["service", "job"],  # job=reservation_sweep/inventory_sync
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0],
)

worker_errors_total = Counter(
    "powerbank_worker_errors_total",
    "Total worker errors",
    ["service", "error_type"],
)

# Application info
app_info = Info("powerbank_worker_app_info", "Application information")


def init_app_info(version: str = "1.0.0"):
    app_info.info({"version": version, "service": SERVICE_NAME, "component": "worker"})


def start_metrics_server(port: int = 8001):
    start_http_server(port)


class MetricsCollector:
    @staticmethod
    def record_sweep(duration: float, expired: int):
        job_duration.labels(service=SERVICE_NAME, job="reservation_sweep").observe(duration)
        if expired:
            reservations_expired_total.labels(service=SERVICE_NAME).inc(expired)

    @staticmethod
    def record_inventory_sync(duration: float, corrected: int, failed: int):
        job_duration.labels(service=SERVICE_NAME, job="inventory_sync").observe(duration)
        if corrected:
            inventory_rows_corrected_total.labels(service=SERVICE_NAME).inc(corrected)
        inventory_rows_failed.labels(service=SERVICE_NAME).set(failed)

    @staticmethod
    def record_worker_error(error_type: str):
        worker_errors_total.labels(service=SERVICE_NAME, error_type=error_type).inc()
