"""
Worker process for background verification.

Builds the service container, runs the Background Processor on a
PeriodicScheduler, and shuts down gracefully on SIGTERM/SIGINT: the tick in
progress finishes and its events are finalized before connections close.
Events left unprocessed by a crash are picked up on the next start.
"""

import asyncio
import signal
import sys
from typing import Optional

from verifier.config import Settings, get_settings
from verifier.container import Services
from verifier.services.scheduler import PeriodicScheduler
from verifier.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


class Worker:
    """Worker process that polls the event store and verifies completed work."""

    def __init__(self, services: Services, scheduler: Optional[PeriodicScheduler] = None):
        self.services = services
        self.scheduler = scheduler or PeriodicScheduler()
        self.running = False
        self._shutdown_event = asyncio.Event()

    async def start(self) -> None:
        """
        Start the worker process.

        Opens connections and runs the processor until shutdown is requested.
        """
        logger.info("Starting worker process...")

        try:
            self.running = True
            await self.services.start()

            self._register_signal_handlers()

            self.services.processor.start(
                self.scheduler, self.services.settings.poll_interval_seconds
            )
            logger.info("Worker process started successfully")

            await self._shutdown_event.wait()

        except Exception as e:
            logger.error(f"Failed to start worker: {e}", exc_info=True)
            raise

    async def stop(self) -> None:
        """
        Stop the worker process gracefully.

        Waits for the current tick to finish before closing connections.
        """
        if not self.running:
            return

        logger.info("Stopping worker process...")
        self.running = False

        await self.services.processor.stop()
        await self.services.close()

        logger.info("Worker process stopped")

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    def _register_signal_handlers(self) -> None:
        """Register signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum: int) -> None:
            signal_name = signal.Signals(signum).name
            logger.info(f"Received signal {signal_name}, initiating graceful shutdown...")
            self.request_shutdown()

        for signum in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(signum, signal_handler, signum)

        logger.info("Signal handlers registered (SIGTERM, SIGINT)")


async def main(settings: Optional[Settings] = None) -> None:
    """Main entry point for worker process."""
    settings = settings or get_settings()
    setup_logging(settings.log_level.upper())

    logger.info("Worker process starting...")
    worker = Worker(Services.build(settings))

    try:
        await worker.start()
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    except Exception as e:
        logger.error(f"Worker process failed: {e}", exc_info=True)
        sys.exit(1)
    finally:
        await worker.stop()


if __name__ == "__main__":
    asyncio.run(main())
