"""Scheduled job handlers.

Jobs are referenced by import path from the persistent jobstore, so they
stay module-level coroutines taking plain arguments.
"""

import time

from wakeme.core.logging import get_logger
from wakeme.core.metrics import scheduler_job_duration
from wakeme.runtime import get_runtime

logger = get_logger(__name__)


async def track_bus_trips() -> None:
    """Run one bus proximity cycle."""
    start = time.monotonic()
    alerts = await get_runtime().tracker.run_bus_cycle()
    scheduler_job_duration.labels(job_type="track_bus_trips").observe(time.monotonic() - start)
    logger.debug("Bus tracking job finished", alerts=alerts)


async def track_train_trips() -> None:
    """Run one train progress cycle."""
    start = time.monotonic()
    alerts = await get_runtime().tracker.run_train_cycle()
    scheduler_job_duration.labels(job_type="track_train_trips").observe(time.monotonic() - start)
    logger.debug("Train tracking job finished", alerts=alerts)


async def run_call_retry(trip_id: int, attempt_no: int) -> None:
    """Place a delayed wake-up call attempt."""
    start = time.monotonic()
    try:
        await get_runtime().orchestrator.run_retry(trip_id, attempt_no)
    except Exception as e:
        logger.error(
            "Call retry failed",
            trip_id=trip_id,
            attempt_no=attempt_no,
            error=str(e),
        )
        raise
    finally:
        scheduler_job_duration.labels(job_type="run_call_retry").observe(time.monotonic() - start)
