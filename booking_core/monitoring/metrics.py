from prometheus_client import Counter, Gauge, Histogram, Info
from prometheus_fastapi_instrumentator import Instrumentator

SERVICE_NAME = "booking-core"

# Business metrics
reservations_total = Counter(
    "powerbank_reservations_total",
    "Reservation requests by outcome",
    ["service", "outcome"],  # outcome=created/duplicate/out_of_stock/completed/cancelled
)

payment_confirmations_total = Counter(
    "powerbank_payment_confirmations_total",
    "Admin payment confirmations by outcome",
    # outcome=confirmed/already_confirmed/duplicate_rental/inventory_failed/error
    ["service", "outcome"],
)

saga_compensations_total = Counter(
    "powerbank_saga_compensations_total",
    "Compensating actions executed after a failed confirmation",
    ["service", "step", "status"],  # status=ok/failed
)

rental_returns_total = Counter(
    "powerbank_rental_returns_total",
    "Rentals completed by admin action",
    ["service", "kind"],  # kind=confirm/force
)

inventory_sync_corrections_total = Counter(
    "powerbank_inventory_sync_corrections_total",
    "Inventory rows corrected by reconciliation",
    ["service"],
)

confirmation_duration_seconds = Histogram(
    "powerbank_confirmation_duration_seconds",
    "Duration of payment confirmation saga",
    ["service"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

# Technical metrics
circuit_breaker_state = Gauge(
    "powerbank_circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open, 2=half_open)",
    ["service", "circuit_name"],  # circuit_name=pricing/payment
)

circuit_breaker_failures = Counter(
    "powerbank_circuit_breaker_failures_total",
    "Total circuit breaker failures",
    ["service", "circuit_name"],
)

external_api_requests = Counter(
    "powerbank_external_api_requests_total",
    "Total external API requests",
    ["service", "api_service", "status"],
)

# Application info
app_info = Info("powerbank_app_info", "Application information")


def setup_instrumentator() -> Instrumentator:
    return Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        should_respect_env_var=False,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/metrics", "/api/v1/health"],
        inprogress_name="http_requests_inprogress",
        inprogress_labels=True,
    )


def init_app_info(version: str = "1.0.0"):
    app_info.info({"version": version, "service": SERVICE_NAME, "component": "api"})


class MetricsCollector:
    @staticmethod
    def record_reservation(outcome: str):
        reservations_total.labels(service=SERVICE_NAME, outcome=outcome).inc()

    @staticmethod
    def record_confirmation(outcome: str, duration: float = None):
        payment_confirmations_total.labels(service=SERVICE_NAME, outcome=outcome).inc()
        if duration is not None:
            confirmation_duration_seconds.labels(service=SERVICE_NAME).observe(duration)

    @staticmethod
    def record_compensation(step: str, success: bool):
        status = "ok" if success else "failed"
        saga_compensations_total.labels(
            service=SERVICE_NAME, step=step, status=status
        ).inc()

    @staticmethod
    def record_return(kind: str):
        rental_returns_total.labels(service=SERVICE_NAME, kind=kind).inc()

    @staticmethod
    def record_inventory_corrections(count: int):
        if count:
            inventory_sync_corrections_total.labels(service=SERVICE_NAME).inc(count)

    @staticmethod
    def record_external_call(api_service: str, success: bool):
        status = "success" if success else "error"
        external_api_requests.labels(
            service=SERVICE_NAME, api_service=api_service, status=status
        ).inc()
