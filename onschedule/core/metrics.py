"""Prometheus metrics instrumentation for OnSchedule."""

from prometheus_client import Counter, Gauge
from prometheus_fastapi_instrumentator import Instrumentator

# Reminder notifications, one increment per recipient outcome
notifications_total = Counter(
    "onschedule_notifications_total",
    "Reminder notifications by channel, provider and outcome",
    ["channel", "provider", "outcome"],
)

# Jobs currently registered in the in-memory scheduler
scheduled_jobs = Gauge(
    "onschedule_scheduled_jobs",
    "Number of pending one-shot reminder jobs",
)

# Job firings
jobs_fired_total = Counter(
    "onschedule_jobs_fired_total",
    "Reminder jobs fired by outcome",
    ["outcome"],
)

# Recurrence sweep items
sweep_items_total = Counter(
    "onschedule_sweep_items_total",
    "Overdue recurring inspections handled by the sweep, by result",
    ["result"],
)


def setup_metrics(app) -> Instrumentator:
    """Set up Prometheus metrics instrumentation for the FastAPI host."""
    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        excluded_handlers=["/health", "/metrics"],
        env_var_name="METRICS_ENABLED",
    )
    instrumentator.instrument(app)
    return instrumentator


def expose_metrics(app, instrumentator: Instrumentator) -> None:
    """Expose the /metrics endpoint."""
    instrumentator.expose(app, endpoint="/metrics", include_in_schema=False)
