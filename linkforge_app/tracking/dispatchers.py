"""
Click dispatch strategies.

A dispatcher is what the resolver's background task runs for each resolved
redirect:

- InlineClickDispatcher: track right here, in the API process
- QueueClickDispatcher: publish to the queue; a ClickWorker tracks later
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum

from linkforge_app.exceptions import QueuePublishError
from linkforge_app.queue.models import ClickMessage
from linkforge_app.queue.strategies import QueueStrategy
from linkforge_app.retry import RetryPolicy, call_with_retry
from linkforge_app.tracking.tracker import ClickTracker

logger = logging.getLogger(__name__)


class TrackingMode(Enum):
    """Available click dispatch modes"""
    QUEUE = "queue"
    INLINE = "inline"


class ClickDispatcher(ABC):
    """Hands a resolved click to the tracking pipeline. Must never raise."""

    @abstractmethod
    async def dispatch(self, message: ClickMessage) -> None:
        pass


class InlineClickDispatcher(ClickDispatcher):

    def __init__(self, tracker: ClickTracker):
        self.tracker = tracker

    async def dispatch(self, message: ClickMessage) -> None:
        await self.tracker.track(message.link_id, message.metadata, message.occurred_at)


class QueueClickDispatcher(ClickDispatcher):

    def __init__(self, queue: QueueStrategy, queue_name: str, retry_policy: RetryPolicy):
        self.queue = queue
        self.queue_name = queue_name
        self.retry_policy = retry_policy

    async def dispatch(self, message: ClickMessage) -> None:
        async def publish():
            if not await self.queue.publish(self.queue_name, message):
                raise QueuePublishError(f"Queue {self.queue_name} rejected click for {message.code}")

        try:
            await call_with_retry(
                publish,
                self.retry_policy,
                f"Click publish for {message.code}",
                retry_on=(QueuePublishError, asyncio.TimeoutError),
            )
        except (QueuePublishError, asyncio.TimeoutError) as exc:
            logger.error(
                "Click for %s (link %s) dropped after %d publish attempts: %r",
                message.code, message.link_id, self.retry_policy.attempts, exc,
            )
