"""Main entry point for the scoring engine process"""
import logging
import asyncio

from prometheus_client import start_http_server

from dojo_scoring.config import (
    validate_config,
    load_success_config,
    LOG_LEVEL,
    ENABLE_LEADERBOARD_REFRESH,
    ENABLE_STREAK_SWEEP,
    STREAK_SWEEP_INTERVAL_SECONDS,
    ENABLE_PROMETHEUS,
    METRICS_PORT,
)
from dojo_scoring.observability.metrics import init_metrics
from dojo_scoring.observability.sentry_config import init_sentry, shutdown_sentry
from dojo_scoring.scheduler.jobs import LeaderboardRefreshJob, StreakSweepJob
from dojo_scoring.services.container import init_container

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO)
)

logger = logging.getLogger(__name__)


async def main() -> None:
    """Main application entry point"""
    jobs = []
    try:
        # Validate configuration
        logger.info("Validating configuration...")
        validate_config()
        config = load_success_config()

        init_sentry()

        if ENABLE_PROMETHEUS:
            init_metrics()
            start_http_server(METRICS_PORT)
            logger.info(f"Prometheus metrics exposed on port {METRICS_PORT}")

        container = init_container(config=config)
        events_service = container.success_events_service

        if ENABLE_LEADERBOARD_REFRESH:
            jobs.append(LeaderboardRefreshJob(events_service))
        if ENABLE_STREAK_SWEEP:
            jobs.append(StreakSweepJob(events_service, interval=STREAK_SWEEP_INTERVAL_SECONDS))

        for job in jobs:
            await job.start()

        logger.info("Scoring engine is running. Press Ctrl+C to stop.")

        # Keep running until interrupted
        await asyncio.Event().wait()

    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
    finally:
        for job in jobs:
            await job.stop()

        shutdown_sentry()
        logger.info("Shutdown complete")


def run() -> None:
    """Console script entry point"""
    asyncio.run(main())


if __name__ == "__main__":
    run()
