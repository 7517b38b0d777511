"""OnSchedule FastAPI application entry point.

Hosts the scheduling core: builds the notification providers, the job
scheduler, dispatcher, binder and recurrence sweep, reloads pending reminder
jobs and runs the daily sweep.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from onschedule import __version__
from onschedule.core.config import settings
from onschedule.core.deps import async_session_factory, engine, get_db
from onschedule.core.errors import ProviderConfigurationError
from onschedule.core.logging import configure_logging
from onschedule.services.delivery.email_delivery import EmailDeliveryService
from onschedule.services.delivery.sms_delivery import SMSDeliveryService
from onschedule.services.delivery.smtp_delivery import SMTPDeliveryService
from onschedule.services.inspection_service import InspectionService
from onschedule.services.job_scheduler import JobScheduler
from onschedule.services.notification_service import NotificationService
from onschedule.services.recurrence_sweep import RecurrenceSweepService
from onschedule.services.reminder_loader import ReminderLoader

logger = structlog.get_logger()

# Module-level references for services that need lifecycle management
_scheduler: JobScheduler | None = None
_binder: InspectionService | None = None
_sweep: RecurrenceSweepService | None = None


def build_dispatcher() -> NotificationService:
    """Construct providers; a channel whose credentials are missing is disabled."""
    email_service = None
    sms_service = None
    fallback_email_service = None

    try:
        email_service = EmailDeliveryService()
    except ProviderConfigurationError as e:
        logger.warning("Email delivery disabled", reason=str(e))

    if settings.email_fallback_enabled:
        try:
            fallback_email_service = SMTPDeliveryService()
        except ProviderConfigurationError as e:
            logger.warning("SMTP fallback disabled", reason=str(e))

    try:
        sms_service = SMSDeliveryService()
    except ProviderConfigurationError as e:
        logger.warning("SMS delivery disabled", reason=str(e))

    return NotificationService(
        session_factory=async_session_factory,
        email_service=email_service,
        sms_service=sms_service,
        fallback_email_service=fallback_email_service,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown events."""
    global _scheduler, _binder, _sweep

    configure_logging()
    logger.info("Starting OnSchedule", environment=settings.environment, timezone=settings.timezone)

    _scheduler = JobScheduler()
    dispatcher = build_dispatcher()
    _binder = InspectionService(async_session_factory, _scheduler, dispatcher)

    try:
        await ReminderLoader(async_session_factory, _binder).load_scheduled_reminders()
    except Exception as e:
        logger.error("Failed to reload scheduled reminders", error=str(e))

    if settings.sweep_enabled:
        _sweep = RecurrenceSweepService(async_session_factory, _binder)
        _sweep.start()

    yield

    # Shutdown
    logger.info("Shutting down OnSchedule")

    if _sweep:
        await _sweep.stop()
        _sweep = None

    await _scheduler.shutdown()
    _scheduler = None
    _binder = None

    await engine.dispose()


app = FastAPI(
    title="OnSchedule",
    description="Recurring inspection scheduling and reminder dispatch",
    version=__version__,
    lifespan=lifespan,
)

# Set up Prometheus metrics instrumentation
_instrumentator = None
if settings.metrics_enabled:
    from onschedule.core.metrics import setup_metrics, expose_metrics

    _instrumentator = setup_metrics(app)
    expose_metrics(app, _instrumentator)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "healthy", "version": __version__}


@app.get("/health/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)) -> dict:
    """Readiness probe - checks database connectivity and scheduler state."""
    await db.execute(text("SELECT 1"))
    return {
        "status": "ready",
        "scheduler_running": _scheduler is not None,
        "pending_jobs": len(_scheduler) if _scheduler else 0,
    }


def get_binder() -> InspectionService:
    """Dependency for accessing the binder in request handlers."""
    if _binder is None:
        raise RuntimeError("Inspection service not initialized")
    return _binder


def run() -> None:
    """Serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("onschedule.main:app", host="0.0.0.0", port=settings.port, log_config=None)
