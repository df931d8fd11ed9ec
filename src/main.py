"""Entry point for the wallet analytics API."""

import asyncio
import signal

from loguru import logger

from config.settings import settings
from src.analytics.metrics import metrics as analytics_metrics
from src.api.server import run_api_server
from src.utils.logger import setup_logger


async def _stats_reporter(interval: float) -> None:
    """Log operation counters every ``interval`` seconds."""
    while True:
        await asyncio.sleep(interval)
        logger.info(f"[STATS] {analytics_metrics.format_stats_line()}")


async def main() -> None:
    setup_logger()
    logger.info("Starting wallet analytics API...")

    # Graceful shutdown on SIGINT/SIGTERM
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("Shutdown signal received")
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    server_task = asyncio.create_task(run_api_server())
    stats_task = asyncio.create_task(_stats_reporter(settings.stats_log_interval_sec))

    # Wait for either the server to finish or a shutdown signal
    done, pending = await asyncio.wait(
        [server_task, asyncio.create_task(shutdown_event.wait())],
        return_when=asyncio.FIRST_COMPLETED,
    )

    # Cancel remaining tasks; the app lifespan closes the provider and Redis
    for task in [*pending, stats_task]:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    for task in done:
        if task is server_task and task.exception():
            logger.error(f"API server stopped with error: {task.exception()!r}")
    logger.info(f"Shutdown complete: {analytics_metrics.format_stats_line()}")


if __name__ == "__main__":
    asyncio.run(main())
