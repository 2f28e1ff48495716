import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel

from linkforge_app.clock import Clock, utcnow
from linkforge_app.directory.strategies import LinkDirectory
from linkforge_app.exceptions import LinkNotFoundError
from linkforge_app.retry import RETRYABLE_ERRORS, RetryPolicy, call_with_retry
from linkforge_app.schemas.link import ClickMetadata
from linkforge_app.tracking.user_agent import parse_user_agent

logger = logging.getLogger(__name__)


class TrackResult(BaseModel):
    event_recorded: bool
    counter_incremented: bool


class ClickTracker:
    """
    Records one click: a ClickEvent row, then click_count + 1.

    The two writes are independent. Each is retried on its own and dropped
    with a logged failure when the policy runs out. A failed event insert
    still lets the increment run, and a failed increment leaves the event in
    place. `track` never raises, so nothing it does can reach a redirect.
    """

    def __init__(self, directory: LinkDirectory, retry_policy: RetryPolicy, clock: Clock = utcnow):
        self.directory = directory
        self.retry_policy = retry_policy
        self.clock = clock

    async def track(
        self,
        link_id: str,
        metadata: Optional[ClickMetadata] = None,
        occurred_at: Optional[datetime] = None,
    ) -> TrackResult:
        metadata = metadata or ClickMetadata()
        occurred_at = occurred_at or self.clock()
        device_type, browser = parse_user_agent(metadata.client_agent)

        event_recorded = await self._attempt(
            lambda: self.directory.insert_click_event(
                link_id,
                occurred_at,
                metadata,
                device_type=device_type,
                browser=browser,
            ),
            f"Click event insert for link {link_id}",
        )
        counter_incremented = await self._attempt(
            lambda: self.directory.increment_click_count(link_id),
            f"Click count increment for link {link_id}",
        )

        return TrackResult(event_recorded=event_recorded, counter_incremented=counter_incremented)

    async def _attempt(self, operation: Callable[[], Awaitable[None]], description: str) -> bool:
        try:
            await call_with_retry(operation, self.retry_policy, description)
            return True
        except LinkNotFoundError:
            # Deleted between redirect and tracking; retrying cannot help
            logger.info("%s dropped: link no longer exists", description)
        except RETRYABLE_ERRORS as exc:
            logger.error(
                "%s dropped after %d attempts: %r",
                description, self.retry_policy.attempts, exc,
            )
        except Exception:
            logger.exception("%s dropped: unexpected error", description)
        return False
