"""Entry point for the pulse token aggregator."""

import asyncio
import signal

from loguru import logger

from config.settings import settings
from src.aggregator.service import MultiChainTokenService
from src.api.registry import registry
from src.api.server import run_api_server
from src.utils.logger import setup_logger
from src.utils.tasks import create_logged_task


async def backfill(service: MultiChainTokenService) -> None:
    """Seed the store from HTTP sources before live frames accumulate."""
    migrated = await service.fetch_migrated_tokens()
    bsc = await service.fetch_bsc_tokens()
    logger.info(f"[MAIN] Backfilled {len(migrated)} migrated Solana and {len(bsc)} BSC tokens")


async def main() -> None:
    setup_logger(json_logs=settings.log_json, level=settings.log_level, log_dir=settings.log_dir)
    logger.info("Starting pulse aggregator...")

    # Graceful shutdown on SIGINT/SIGTERM
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("Shutdown signal received")
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    service = MultiChainTokenService(settings)
    registry.service = service
    service.start()
    tasks = [
        create_logged_task(backfill(service), "backfill"),
        asyncio.create_task(shutdown_event.wait()),
    ]
    if settings.api_enabled:
        tasks.append(asyncio.create_task(run_api_server()))

    # Wait for the API server to exit or a shutdown signal; backfill finishing is not an exit
    pending = set(tasks)
    while True:
        done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
        if any(task is not tasks[0] for task in done) or not pending:
            break

    # Cancel remaining tasks
    for task in pending:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    await service.stop()
    await registry.close()
    registry.service = None
    logger.info("Shutdown complete")


if __name__ == "__main__":
    asyncio.run(main())
