"""
Click Worker

Consumes click messages from the queue and records them through the
ClickTracker (event row + counter increment).

Architecture:
- Consumes messages from queue in batches
- Tracks each click with bounded, per-write retries
- Acknowledges the batch once every message has been handled; a click the
  tracker had to drop is logged there and not redelivered

Runs embedded in the API process (see main.py lifespan) or standalone:
    python -m linkforge_app.tracking.worker
"""

import asyncio
import logging
import signal
import sys
from typing import List

from linkforge_app.config import settings
from linkforge_app.queue.models import ClickMessage
from linkforge_app.queue.strategies import QueueStrategy
from linkforge_app.tracking.tracker import ClickTracker

logger = logging.getLogger(__name__)


class ClickWorker:
    """Batch consumer that feeds the click tracker"""

    def __init__(
        self,
        queue: QueueStrategy,
        tracker: ClickTracker,
        queue_name: str = settings.queue_name,
        batch_size: int = settings.queue_batch_size,
        block_time: int = settings.queue_block_ms,
    ):
        self.queue = queue
        self.tracker = tracker
        self.queue_name = queue_name
        self.batch_size = batch_size
        self.block_time = block_time
        self.running = False
        self.processed_count = 0

    async def start(self):
        """Consume until stop() is called or the task is cancelled"""
        self.running = True
        logger.info("Click worker started (queue=%s, batch size=%d)", self.queue_name, self.batch_size)

        while self.running:
            try:
                await self.process_batch()
            except asyncio.CancelledError:
                logger.info("Click worker task cancelled")
                raise
            except Exception:
                logger.exception("Error processing click batch")
                await asyncio.sleep(1)

        logger.info("Click worker stopped after %d clicks", self.processed_count)

    async def process_batch(self) -> int:
        """Consume, track and acknowledge one batch. Returns the number of messages handled."""
        messages = await self.queue.consume(
            self.queue_name,
            batch_size=self.batch_size,
            block_time=self.block_time,
        )
        if not messages:
            return 0

        await self._track_all(messages)

        message_ids = [msg.message_id for msg in messages if msg.message_id]
        if message_ids:
            await self.queue.ack(self.queue_name, message_ids)

        self.processed_count += len(messages)
        logger.debug("Processed %d clicks. Total: %d", len(messages), self.processed_count)
        return len(messages)

    async def _track_all(self, messages: List[ClickMessage]):
        for message in messages:
            await self.tracker.track(message.link_id, message.metadata, message.occurred_at)

    def install_signal_handlers(self):
        """Stop gracefully on SIGINT/SIGTERM (standalone mode only)"""
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        logger.info("Received signal %s. Shutting down gracefully...", signum)
        self.stop()

    def stop(self):
        self.running = False


async def main():
    """Standalone entry point for the click worker."""
    from linkforge_app.database.connection import Base, engine
    from linkforge_app.directory.factory import DirectoryBackend, DirectoryFactory
    from linkforge_app.logging_config import configure_logging
    from linkforge_app.queue.factory import QueueBackend, QueueFactory
    from linkforge_app.retry import tracking_retry_policy

    configure_logging(settings.log_level)
    logger.info(
        "Starting click worker (environment=%s, queue=%s, directory=%s)",
        settings.environment, settings.queue_backend, settings.directory_backend,
    )

    Base.metadata.create_all(bind=engine)

    queue = QueueFactory.create(QueueBackend(settings.queue_backend))
    directory = DirectoryFactory.create(DirectoryBackend(settings.directory_backend))
    tracker = ClickTracker(directory, tracking_retry_policy())

    worker = ClickWorker(queue=queue, tracker=tracker)
    worker.install_signal_handlers()

    try:
        await worker.start()
    except Exception:
        logger.exception("Click worker crashed")
        sys.exit(1)
    finally:
        directory.close()


if __name__ == "__main__":
    asyncio.run(main())
