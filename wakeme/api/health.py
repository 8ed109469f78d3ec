"""Health check endpoints."""

import asyncio
from typing import Any

from fastapi import APIRouter, HTTPException
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from wakeme.core.logging import get_logger
from wakeme.core.metrics import health_ready_checks_total
from wakeme.runtime import WakeRuntime, get_runtime
from wakeme.scheduler.setup import get_scheduler

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health/live")
def health_live() -> dict[str, str]:
    """Health check endpoint for liveness checks."""
    return {"status": "ok"}


@router.get("/health/ready")
async def health_ready() -> dict[str, Any]:
    """Health check endpoint for readiness checks."""
    errors = []

    try:
        runtime: WakeRuntime | None = get_runtime()
    except RuntimeError:
        runtime = None

    # Check database connectivity
    if runtime is None or not await _check_database(runtime):
        errors.append("database_connection_failed")
        health_ready_checks_total.labels(result="fail", reason="database").inc()
    else:
        health_ready_checks_total.labels(result="ok", reason="database").inc()

    # Check scheduler health
    if runtime is not None and runtime.settings.scheduler_enabled:
        if not _check_scheduler():
            errors.append("scheduler_unhealthy")
            health_ready_checks_total.labels(result="fail", reason="scheduler").inc()
        else:
            health_ready_checks_total.labels(result="ok", reason="scheduler").inc()

    if errors:
        raise HTTPException(status_code=503, detail={"status": "unready", "errors": errors})

    return {"status": "ready"}


async def _check_database(runtime: WakeRuntime) -> bool:
    """Check database connectivity."""
    if runtime.engine is None:
        return False

    async def ping() -> None:
        async with runtime.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    try:
        await asyncio.wait_for(ping(), timeout=runtime.settings.readiness_db_timeout_sec)
        return True
    except (SQLAlchemyError, OSError, TimeoutError) as e:
        logger.warning("Readiness database check failed", error=str(e))
        return False


def _check_scheduler() -> bool:
    """Check scheduler health."""
    try:
        scheduler = get_scheduler()
    except RuntimeError:
        return False

    # Check if scheduler is running
    if not scheduler.running:
        return False

    # Try to access jobstore
    try:
        scheduler.get_jobs()
    except SQLAlchemyError as e:
        logger.warning("Readiness scheduler check failed", error=str(e))
        return False
    return True
