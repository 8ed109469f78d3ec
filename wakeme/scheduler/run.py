"""APScheduler runner that blocks indefinitely.

Runs the tracking cycles and call retries without the HTTP app, for
deployments that split the worker from the webhook server.
"""

import asyncio

from wakeme.core.logging import get_logger, setup_logging
from wakeme.core.settings import get_settings
from wakeme.runtime import build_runtime, set_runtime
from wakeme.scheduler.setup import ApschedulerRetryScheduler, shutdown_scheduler, start_scheduler

logger = get_logger(__name__)


async def main() -> None:
    """Main scheduler function that blocks indefinitely."""
    settings = get_settings()
    setup_logging(settings.log_level)

    runtime = build_runtime(settings, ApschedulerRetryScheduler())
    set_runtime(runtime)
    try:
        if not await start_scheduler(settings):
            logger.error("SCHEDULER_ENABLED is false, nothing to run")
            return

        logger.info("Scheduler started successfully, blocking indefinitely")
        while True:
            await asyncio.sleep(3600)
    except asyncio.CancelledError:
        logger.info("Received shutdown signal")
    except Exception as e:
        logger.error("Fatal error in scheduler", error=str(e))
        raise
    finally:
        await shutdown_scheduler()
        set_runtime(None)
        await runtime.aclose()
        logger.info("Scheduler shutdown complete")


if __name__ == "__main__":
    asyncio.run(main())
