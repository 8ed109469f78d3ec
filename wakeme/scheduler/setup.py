"""APScheduler setup and configuration."""

from datetime import UTC, datetime, timedelta
from typing import Any

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.schedulers.base import STATE_PAUSED, STATE_RUNNING
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from wakeme.core.logging import get_logger
from wakeme.core.metrics import scheduler_job_lag_seconds
from wakeme.core.services import RetryScheduler, RetrySchedulingError, call_retry_job_id
from wakeme.core.settings import Settings, get_settings
from wakeme.scheduler.registry import get_job_function

logger = get_logger(__name__)

HEARTBEAT_JOB_ID = "heartbeat"

# Global scheduler instance
_scheduler: AsyncIOScheduler | None = None


def get_scheduler() -> AsyncIOScheduler:
    """Get the global scheduler instance."""
    if _scheduler is None:
        raise RuntimeError("Scheduler not initialized. Call start_scheduler() first.")
    return _scheduler


def is_scheduler_running() -> bool:
    """True when the global scheduler exists and accepts jobs, paused or not."""
    return _scheduler is not None and _scheduler.running


def create_scheduler(settings: Settings) -> AsyncIOScheduler:
    """Create and configure the APScheduler instance."""
    # Job store configuration
    if settings.app_database_url_sync:
        jobstores: dict[str, Any] = {
            "default": SQLAlchemyJobStore(
                url=settings.app_database_url_sync,
                tablename=settings.scheduler_jobstore_table_name,
            )
        }
    else:
        jobstores = {"default": MemoryJobStore()}

    # Executor configuration
    executors = {
        "default": AsyncIOExecutor(),
    }

    # Job defaults
    job_defaults = {
        "coalesce": True,
        "max_instances": 1,
        "misfire_grace_time": 60,
    }

    scheduler = AsyncIOScheduler(
        jobstores=jobstores,
        executors=executors,
        job_defaults=job_defaults,
        timezone="UTC",
    )
    scheduler.add_listener(_on_job_event, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
    return scheduler


def _on_job_event(event: JobExecutionEvent) -> None:
    if event.exception is not None:
        logger.error("Scheduled job raised", job_id=event.job_id, error=str(event.exception))
        return
    if event.job_id == HEARTBEAT_JOB_ID and event.scheduled_run_time is not None:
        lag_seconds = (datetime.now(UTC) - event.scheduled_run_time).total_seconds()
        scheduler_job_lag_seconds.set(lag_seconds)


async def heartbeat_job() -> None:
    """Heartbeat job to monitor scheduler health."""
    logger.debug("Scheduler heartbeat")


def register_recurring_jobs(scheduler: AsyncIOScheduler, settings: Settings) -> None:
    """Register the heartbeat and the two tracking cycles."""
    if settings.startup_heartbeat_job_cron:
        scheduler.add_job(
            func=heartbeat_job,
            trigger=CronTrigger.from_crontab(settings.startup_heartbeat_job_cron),
            id=HEARTBEAT_JOB_ID,
            name="Scheduler Heartbeat",
            replace_existing=True,
        )

    scheduler.add_job(
        func=get_job_function("track_bus_trips"),
        trigger=IntervalTrigger(seconds=settings.bus_tracking_interval_sec),
        id="track_bus_trips",
        name="Bus proximity cycle",
        replace_existing=True,
    )
    scheduler.add_job(
        func=get_job_function("track_train_trips"),
        trigger=IntervalTrigger(seconds=settings.train_tracking_interval_sec),
        id="track_train_trips",
        name="Train progress cycle",
        replace_existing=True,
    )


async def schedule_one_shot(
    run_at: datetime, func_name: str, job_id: str | None = None, **kwargs: Any
) -> str:
    """Schedule a one-shot job.

    A given job_id replaces any pending job with the same id.
    """
    scheduler = get_scheduler()

    # Get the job function from registry
    job_func = get_job_function(func_name)

    job = scheduler.add_job(
        func=job_func,
        trigger="date",
        run_date=run_at,
        kwargs=kwargs,
        id=job_id or f"oneshot_{func_name}_{run_at.timestamp()}",
        name=f"One-shot {func_name}",
        replace_existing=job_id is not None,
        # A late retry still has to run after a restart
        misfire_grace_time=None,
    )

    return job.id


class ApschedulerRetryScheduler(RetryScheduler):
    """Call retries as persistent one-shot jobs."""

    async def schedule_call_retry(self, trip_id: int, attempt_no: int, delay_sec: int) -> str:
        job_id = call_retry_job_id(trip_id, attempt_no)
        if not is_scheduler_running():
            raise RetrySchedulingError(f"no scheduler to run {job_id}")

        run_at = datetime.now(UTC) + timedelta(seconds=delay_sec)
        await schedule_one_shot(
            run_at,
            "run_call_retry",
            job_id=job_id,
            trip_id=trip_id,
            attempt_no=attempt_no,
        )
        logger.info(
            "Call retry scheduled",
            trip_id=trip_id,
            attempt_no=attempt_no,
            run_at=run_at.isoformat(),
            paused=_scheduler is not None and _scheduler.state == STATE_PAUSED,
        )
        return job_id


async def start_scheduler(settings: Settings | None = None) -> bool:
    """Start the scheduler. Returns False when this process runs no jobs.

    With the scheduler disabled but a shared jobstore configured, a paused
    scheduler is started so one-shot jobs are written for the worker to run.
    """
    global _scheduler

    settings = settings or get_settings()
    if _scheduler is not None:
        return _scheduler.state == STATE_RUNNING  # Already started

    if not settings.scheduler_enabled:
        if not settings.app_database_url_sync:
            logger.info("Scheduler disabled")
            return False
        _scheduler = create_scheduler(settings)
        _scheduler.start(paused=True)
        logger.info("Scheduler disabled, writing one-shot jobs to the shared jobstore")
        return False

    _scheduler = create_scheduler(settings)
    register_recurring_jobs(_scheduler, settings)
    _scheduler.start()
    logger.info(
        "Scheduler started",
        bus_interval_sec=settings.bus_tracking_interval_sec,
        train_interval_sec=settings.train_tracking_interval_sec,
    )
    return True


async def shutdown_scheduler() -> None:
    """Shutdown the scheduler."""
    global _scheduler

    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Scheduler stopped")
